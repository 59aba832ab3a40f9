# Copyright (c) Syntropy Systems
"""capping command line interface."""

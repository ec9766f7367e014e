#!/usr/bin/env python3
# filename: kralpanel-installer/install.py
# -*- coding: utf-8 -*-
"""
Entry point for the KralPanel installer.

Equivalent to the ``kralpanel-install`` console script; run as root.
"""

from kralpanel.cli import main

if __name__ == "__main__":
    main()

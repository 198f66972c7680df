# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/vpsforge/__init__.py

__version__ = "0.1.0"

__all__ = ["__version__"]

"""sdk - Software Development Kit for wotkit device collaborators

Contains reusable modules for:
    - logging: Centralized hierarchical logging
    - devices: Base classes for device drivers and example things
"""

__version__ = "0.3.0"
__versionInfo__ = (0, 3, 0)

"""
Provisioner — resumable, multi-reboot host bootstrap.
"""

__version__ = "0.1.0"

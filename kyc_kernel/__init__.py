"""
KYC Review Kernel

Pure decision logic for the KYC review workflow of the payments dashboard:
- Closed status registry with display metadata
- Regular and privileged transition tables
- Transition validation, reason policy and modification gate
- Typed errors and structured logging shared by the outer layers
"""

__version__ = "0.1.0"

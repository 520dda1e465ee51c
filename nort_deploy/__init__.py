"""
Deployment Scripts
==================

Scripts for deploying and wiring the Nort Token contracts.

Structure:
- networks: BSC network profiles and compiler settings
- config: Secrets and deployment plan loading
- artifacts: Compiled contract artifacts
- client: Chain session used to sign and send transactions
- deploy: Token and private sale deployment
"""

__version__ = "1.0.0"
__author__ = "Nort Token Team"

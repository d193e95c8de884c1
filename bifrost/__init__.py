# ABOUTME: Bifrost package root
# ABOUTME: Tunnels to private RDS/Redis endpoints through a bastion host via SSM

"""Bifrost - connect to private data stores through a bastion host."""

__version__ = "1.0.0"

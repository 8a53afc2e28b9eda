"""Process supervision for the wrapped CLI."""

from clibridge.process.supervisor import ProcessSupervisor

__all__ = ["ProcessSupervisor"]

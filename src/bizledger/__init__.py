"""bizledger - role resolution, access control and salary/advance reconciliation."""

__version__ = "0.1.0"

"""Account ledger service: token authentication and atomic transfers"""

__version__ = "0.1.0"

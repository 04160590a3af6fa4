"""shh_node - privacy relay node for the SHH transfer network."""

__version__ = "0.1.0"

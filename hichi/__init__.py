"""χc / χb → J/ψ(Υ) γ conversion analysis of pPb HiForest trees"""

__version__ = "0.1.0"

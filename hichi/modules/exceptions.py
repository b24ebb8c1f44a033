#!/usr/bin/env python3
"""
Custom exceptions for the χ conversion analysis

Provides a hierarchy of exceptions for better error handling and diagnostics.
All custom exceptions inherit from AnalysisError for easy catching.

Local conditions (a column missing from the file, a fill on an unbooked
histogram, an empty drawing tag) never raise. Everything below aborts the run.
"""


class AnalysisError(Exception):
    """
    Base exception for all analysis errors

    All custom exceptions inherit from this class, allowing users to catch
    all analysis-specific errors with a single except clause.
    """
    pass


class ConfigurationError(AnalysisError):
    """
    Raised when configuration is invalid or missing required fields

    Examples:
    - Missing analysis.toml
    - Invalid TOML syntax
    - Missing [samples] or [histograms] section
    """
    pass


class DataLoadError(AnalysisError):
    """
    Raised when input trees cannot be opened or read in lockstep

    Examples:
    - File not found or not a ROOT file
    - Missing convAna/muonAna directory
    - Linked trees with different number of entries
    - Failure to advance to a requested entry
    """
    pass


class BranchMissingError(AnalysisError):
    """
    Raised when a column is requested that the tree schema does not know

    Examples:
    - Column from the muon schema used on a conversion tree
    - Column whose row group is not part of the schema
    """
    def __init__(self, branch_name: str, file_path: str = None):
        """
        Initialize BranchMissingError

        Args:
            branch_name: Name of the missing branch
            file_path: Optional path to the file being read
        """
        self.branch_name = branch_name
        self.file_path = file_path

        message = f"Required branch '{branch_name}' not found"
        if file_path:
            message += f" in file: {file_path}"

        super().__init__(message)


class ValidationError(AnalysisError):
    """
    Raised when sanity checks on the input fail

    Examples:
    - Muon and conversion trees disagree on the event
    - Reconstructed candidate mass inconsistent with its constituents
    """
    pass


class EventMismatchError(ValidationError):
    """Raised when two synchronized sources point to different events"""

    def __init__(self, sample: str, entry: int, field: str, expected, found):
        self.sample = sample
        self.entry = entry
        self.field = field
        self.expected = expected
        self.found = found
        super().__init__(
            f"Inconsistent {field} in sample '{sample}' at entry {entry}: "
            f"muon tree has {expected}, conversion tree has {found}"
        )


class CandidateMassError(ValidationError):
    """Raised when a χ candidate fails the mass sanity check"""

    def __init__(self, chi_type: int, mass: float, reference: float,
                 tolerance: float, entry: int = None):
        self.chi_type = chi_type
        self.mass = mass
        self.reference = reference
        self.tolerance = tolerance
        self.entry = entry
        message = (
            f"Candidate of type {chi_type} has corrected mass {mass:.6f} GeV, "
            f"expected {reference:.6f} ± {tolerance} GeV"
        )
        if entry is not None:
            message += f" (entry {entry})"
        super().__init__(message)

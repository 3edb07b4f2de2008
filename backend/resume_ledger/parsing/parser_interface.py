"""Parser interface for the external resume parsing collaborator."""

from abc import ABC, abstractmethod

from resume_ledger.models.resume_version import ResumeVersion
from resume_ledger.parsing.types import ParsedField


class ResumeParserInterface(ABC):
    """Abstract resume parser."""

    @abstractmethod
    def parse(self, resume_version: ResumeVersion) -> list[ParsedField]:
        """Extract field values from the uploaded resume file."""

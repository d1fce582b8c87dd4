"""Canned access-control policies for uploaded objects."""

from enum import Enum
from typing import Optional


class StorageAcl(str, Enum):
    """Predefined ACLs accepted by Google Cloud Storage."""

    PRIVATE = "private"
    PUBLIC_READ = "public-read"
    PUBLIC_READ_WRITE = "public-read-write"
    AUTHENTICATED_READ = "authenticated-read"
    BUCKET_OWNER_READ = "bucket-owner-read"
    BUCKET_OWNER_FULL_CONTROL = "bucket-owner-full-control"

    @property
    def predefined_acl(self) -> str:
        """Name of the policy in the JSON API (``publicRead`` and so on)."""
        head, *rest = self.value.split("-")
        return head + "".join(part.capitalize() for part in rest)

    @classmethod
    def from_name(cls, name: Optional[str]) -> "StorageAcl":
        """Parse an ACL name, treating an empty name as ``private``.

        Raises:
            ValueError: If the name is not one of the canned policies
        """
        if name is None or name == "":
            return cls.PRIVATE
        if isinstance(name, cls):
            return name
        if not isinstance(name, str):
            raise ValueError(f"ACL must be a name, got {type(name).__name__}")
        try:
            return cls(name.strip().lower())
        except ValueError:
            choices = ", ".join(acl.value for acl in cls)
            raise ValueError(f"Unknown ACL '{name}', expected one of: {choices}") from None

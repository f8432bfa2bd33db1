"""Zstd-specific compression parameters."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class CParameter:
    """A single zstd compression parameter.

    ``name`` is the keyword accepted by zstandard's compression parameters.
    """

    name: str
    value: int | bool

    @classmethod
    def window_log(cls, value: int) -> CParameter:
        """Window size in bytes (as a power of two)."""
        return cls("window_log", int(value))

    @classmethod
    def hash_log(cls, value: int) -> CParameter:
        """Size of the initial probe table in 4-byte entries (as a power of two)."""
        return cls("hash_log", int(value))

    @classmethod
    def chain_log(cls, value: int) -> CParameter:
        """Size of the multi-probe table in 4-byte entries (as a power of two)."""
        return cls("chain_log", int(value))

    @classmethod
    def search_log(cls, value: int) -> CParameter:
        """Number of search attempts (as a power of two)."""
        return cls("search_log", int(value))

    @classmethod
    def min_match(cls, value: int) -> CParameter:
        """Minimum size of matches searched for."""
        return cls("min_match", int(value))

    @classmethod
    def target_length(cls, value: int) -> CParameter:
        """Strategy-dependent length modifier."""
        return cls("target_length", int(value))

    @classmethod
    def enable_long_distance_matching(cls, value: bool) -> CParameter:
        """Enable long-distance matching; this increases the default window size."""
        return cls("enable_ldm", bool(value))

    @classmethod
    def ldm_hash_log(cls, value: int) -> CParameter:
        """Size of the long-distance matching table (as a power of two)."""
        return cls("ldm_hash_log", int(value))

    @classmethod
    def ldm_min_match(cls, value: int) -> CParameter:
        """Minimum size of long-distance matches searched for."""
        return cls("ldm_min_match", int(value))

    @classmethod
    def ldm_bucket_size_log(cls, value: int) -> CParameter:
        """Size of each bucket in the LDM hash table (as a power of two)."""
        return cls("ldm_bucket_size_log", int(value))

    @classmethod
    def ldm_hash_rate_log(cls, value: int) -> CParameter:
        """Frequency of using the LDM hash table (as a power of two)."""
        return cls("ldm_hash_rate_log", int(value))

    @classmethod
    def content_size_flag(cls, value: bool) -> CParameter:
        """Emit the size of the content (default: true)."""
        return cls("write_content_size", bool(value))

    @classmethod
    def checksum_flag(cls, value: bool) -> CParameter:
        """Emit a checksum (default: false)."""
        return cls("write_checksum", bool(value))

    @classmethod
    def dict_id_flag(cls, value: bool) -> CParameter:
        """Emit a dictionary ID when using a custom dictionary (default: true)."""
        return cls("write_dict_id", bool(value))

    @classmethod
    def nb_workers(cls, value: int) -> CParameter:
        """Number of worker threads; 0 compresses on the calling thread."""
        return cls("threads", int(value))

    @classmethod
    def job_size(cls, value: int) -> CParameter:
        """Bytes given to each worker; 0 lets zstd choose."""
        return cls("job_size", int(value))
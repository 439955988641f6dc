"""Filesystem clients built on top of remote shell execution."""

from podfs.fs.container import ContainerFs
from podfs.fs.listing import ListingParseError, parse_listing, parse_ls_line
from podfs.fs.multipod import MultiPodFs
from podfs.fs.path import VirtualPath
from podfs.fs.shell import ShellDriver

__all__ = [
    "ContainerFs",
    "ListingParseError",
    "MultiPodFs",
    "ShellDriver",
    "VirtualPath",
    "parse_listing",
    "parse_ls_line",
]

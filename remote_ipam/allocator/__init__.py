"""Address allocation backend used by the delegation server."""

from remote_ipam.allocator.base import AddressAllocator, AllocatorFactory
from remote_ipam.allocator.range_allocator import RangeAllocator, create_range_allocator
from remote_ipam.allocator.ranges import Range, RangeSet, parse_range_set
from remote_ipam.allocator.store import AllocationStore

__all__ = [
    "AddressAllocator",
    "AllocationStore",
    "AllocatorFactory",
    "Range",
    "RangeAllocator",
    "RangeSet",
    "create_range_allocator",
    "parse_range_set",
]

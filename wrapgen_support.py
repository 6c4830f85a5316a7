"""Runtime support for wrappers generated by vulkan-wrapper-gen.

Generated modules import their buffer types, allocation scopes and the
two-call enumeration helper from the manifest's `runtime` module. Point it
at this module:

    {"binding": "vulkan_binding", "runtime": "wrapgen_support", ...}

Buffers are ctypes arrays, so a ctypes based binding can hand `address()`
straight to the Vulkan loader. Binding struct classes take part in the same
allocation protocol as the buffers here: `malloc(count, scope=None)`,
`calloc(count, scope=None)`, `wrap(memory)`, `SIZEOF`, and `free()` /
`limit(n)` on the returned buffer.
"""

import ctypes
from collections.abc import Callable, Iterator


class VulkanError(RuntimeError):
    """A Vulkan command returned an error VkResult."""


# ===--- Buffers ---=== #


class Buffer:
    """Fixed capacity array of C scalars with a movable limit.

    Indexing and iteration only see elements below the limit. A freed buffer
    raises on every access.
    """

    ctype: type = ctypes.c_uint8

    def __init__(self, capacity: int):
        if capacity < 0:
            raise ValueError(f"Negative buffer capacity: {capacity}")
        self._array = (self.ctype * capacity)()
        self._limit = capacity
        self._freed = False

    @classmethod
    def malloc(cls, count: int, scope: "Scope | None" = None) -> "Buffer":
        buffer = cls(count)
        return scope.track(buffer) if scope is not None else buffer

    @classmethod
    def calloc(cls, count: int, scope: "Scope | None" = None) -> "Buffer":
        # ctypes arrays start zeroed
        return cls.malloc(count, scope)

    @classmethod
    def wrap(cls, memory: bytearray) -> "Buffer":
        """View `memory` as a buffer of whole elements; no copy is made."""
        buffer = cls.__new__(cls)
        buffer._array = (cls.ctype * (len(memory) // cls.SIZEOF)).from_buffer(memory)
        buffer._limit = len(buffer._array)
        buffer._freed = False
        return buffer

    @classmethod
    def of(cls, *values: int | float, scope: "Scope | None" = None) -> "Buffer":
        buffer = cls.malloc(len(values), scope)
        for index, value in enumerate(values):
            buffer[index] = value
        return buffer

    @property
    def _live(self) -> ctypes.Array:
        if self._freed:
            raise ValueError(f"{type(self).__name__} used after it was freed")
        return self._array

    def address(self) -> int:
        return ctypes.addressof(self._live)

    def capacity(self) -> int:
        return len(self._live)

    def remaining(self) -> int:
        if self._freed:
            raise ValueError(f"{type(self).__name__} used after it was freed")
        return self._limit

    def limit(self, new_limit: int) -> None:
        if not 0 <= new_limit <= self.capacity():
            raise IndexError(
                f"Limit {new_limit} outside {type(self).__name__} capacity {self.capacity()}"
            )
        self._limit = new_limit

    def free(self) -> None:
        self._freed = True

    @property
    def freed(self) -> bool:
        return self._freed

    def _check_index(self, index: int) -> int:
        if not 0 <= index < self._limit:
            raise IndexError(f"{type(self).__name__} index {index} out of range")
        return index

    def __getitem__(self, index: int) -> int | float:
        return self._live[self._check_index(index)]

    def __setitem__(self, index: int, value: int | float) -> None:
        self._live[self._check_index(index)] = value

    def __len__(self) -> int:
        return self.remaining()

    def __iter__(self) -> Iterator[int | float]:
        for index in range(self.remaining()):
            yield self[index]

    def __repr__(self) -> str:
        if self._freed:
            return f"{type(self).__name__}(<freed>)"
        return f"{type(self).__name__}({list(self)})"


class ByteBuffer(Buffer):
    ctype = ctypes.c_uint8
    SIZEOF = ctypes.sizeof(ctypes.c_uint8)


class IntBuffer(Buffer):
    ctype = ctypes.c_int32
    SIZEOF = ctypes.sizeof(ctypes.c_int32)


class LongBuffer(Buffer):
    ctype = ctypes.c_int64
    SIZEOF = ctypes.sizeof(ctypes.c_int64)


class FloatBuffer(Buffer):
    ctype = ctypes.c_float
    SIZEOF = ctypes.sizeof(ctypes.c_float)


class PointerBuffer(Buffer):
    """Pointer sized values: dispatchable handles and addresses."""

    ctype = ctypes.c_size_t
    SIZEOF = ctypes.sizeof(ctypes.c_size_t)


# ===--- Scopes ---=== #


class Scope:
    """Allocations released together when the `with` block exits.

    Buffers handed out by a scope are only valid inside its block.
    """

    def __init__(self):
        self._resources: list = []
        self._active = False

    def __enter__(self) -> "Scope":
        self._active = True
        return self

    def __exit__(self, *exc_info: object) -> None:
        self._active = False
        resources, self._resources = self._resources, []
        for resource in reversed(resources):
            resource.free()

    @property
    def active(self) -> bool:
        return self._active

    def track(self, resource):
        """Free `resource` when this scope exits and return it."""
        if not self._active:
            raise RuntimeError("Scope used outside its with block")
        self._resources.append(resource)
        return resource

    def malloc_byte(self, count: int) -> ByteBuffer:
        return ByteBuffer.malloc(count, self)

    def malloc_int(self, count: int) -> IntBuffer:
        return IntBuffer.malloc(count, self)

    def malloc_long(self, count: int) -> LongBuffer:
        return LongBuffer.malloc(count, self)

    def malloc_float(self, count: int) -> FloatBuffer:
        return FloatBuffer.malloc(count, self)

    def malloc_pointer(self, count: int) -> PointerBuffer:
        return PointerBuffer.malloc(count, self)

    def ints(self, *values: int) -> IntBuffer:
        return IntBuffer.of(*values, scope=self)


class _Heap:
    def __repr__(self) -> str:
        return "HEAP"


HEAP = _Heap()
"""Allocation target for buffers the caller frees explicitly."""


# ===--- Allocators ---=== #


class CompleteAllocator:
    """Allocates buffers of one element class on a scope, the heap, or given memory."""

    def __init__(self, element: type):
        self.element = element

    @property
    def sizeof(self) -> int:
        return self.element.SIZEOF

    def malloc(self, count: int, scope: Scope | None = None):
        if scope is None:
            return self.element.malloc(count)
        return self.element.malloc(count, scope=scope)

    def calloc(self, count: int, scope: Scope | None = None):
        if scope is None:
            return self.element.calloc(count)
        return self.element.calloc(count, scope=scope)

    def wrap(self, memory: bytearray):
        return self.element.wrap(memory)

    def free(self, buffer) -> None:
        buffer.free()

    def __repr__(self) -> str:
        return f"CompleteAllocator({getattr(self.element, '__name__', self.element)!r})"


IntBufferAllocator = CompleteAllocator(IntBuffer)
LongBufferAllocator = CompleteAllocator(LongBuffer)
PointerBufferAllocator = CompleteAllocator(PointerBuffer)


# ===--- Two-call enumeration ---=== #

FillFunction = Callable[[IntBuffer, object], None]


class CompleteEnumerable:
    """A resource read with the Vulkan two-call protocol.

    `fill(count, None)` stores the element count in `count[0]`;
    `fill(count, values)` writes up to `count[0]` elements into `values` and
    stores how many it wrote. The count and fill calls are separate, so the
    result may be stale if the resource changes in between.

    Args:
        allocator: Allocator for the element buffer.
        fill: The wrapped command, taking the count and value buffers.
    """

    def __init__(self, allocator: CompleteAllocator, fill: FillFunction):
        self.allocator = allocator
        self.fill = fill

    def count(self) -> int:
        with Scope() as scope:
            count = scope.malloc_int(1)
            self.fill(count, None)
            return count[0]

    @property
    def required_bytes(self) -> int:
        return self.count() * self.allocator.sizeof

    def alloc_on(self, supply: "Scope | _Heap | Callable[[int], object]"):
        """Query the count, allocate from `supply`, then fill.

        Args:
            supply: A Scope (the buffer lives until it exits), HEAP (the
                caller frees the buffer), or a callable taking the count and
                returning a buffer.

        Returns:
            The filled buffer, limited to the number of elements written.
        """
        count = self.count()
        if isinstance(supply, Scope):
            values = self.allocator.malloc(count, scope=supply)
        elif supply is HEAP:
            values = self.allocator.malloc(count)
        elif callable(supply):
            values = supply(count)
        else:
            raise TypeError(f"Cannot allocate {count} elements from {supply!r}")
        return self._fill_into(count, values)

    def put(self, memory: bytearray):
        """Fill elements into caller owned memory and return the buffer view."""
        count = self.count()
        return self._fill_into(count, self.allocator.wrap(memory))

    def _fill_into(self, count: int, values):
        with Scope() as scope:
            written = scope.ints(count)
            self.fill(written, values)
            values.limit(written[0])
        return values

    def __iter__(self) -> Iterator:
        """Enumerate lazily; elements are valid only while iterating."""
        with Scope() as scope:
            yield from self.alloc_on(scope)

"""
This module holds the package registry: the tree of proto packages built from
the full set of input files, and the type resolution logic that finds a message
definition given the scope it is referenced from.

The registry has a two-phase lifecycle. During the build phase messages are
registered one at a time. Once every input message has been registered, the
registry is frozen and may then be shared (read-only) by any number of
conversions.
"""

# Standard
from types import MappingProxyType
from typing import Iterable, Mapping, NamedTuple, Optional
import weakref

# Third Party
from google.protobuf import descriptor_pb2

# First Party
import alog

# Local
from .utils import FileInputTypes, split_type_name, to_file_protos

log = alog.use_channel("P2JREG")


class PackageNode:
    """One segment of the package namespace"""

    def __init__(self, name: str, parent: Optional["PackageNode"] = None):
        self.name = name
        # The parent link is only used to walk upward during name resolution,
        # so it must not keep the parent alive
        self._parent = weakref.ref(parent) if parent is not None else None
        self.children: Mapping[str, "PackageNode"] = {}
        self.types: Mapping[str, descriptor_pb2.DescriptorProto] = {}

    @property
    def parent(self) -> Optional["PackageNode"]:
        if self._parent is None:
            return None
        return self._parent()

    def ancestors(self) -> Iterable["PackageNode"]:
        """Iterate this node and all of its ancestors up to the root"""
        pkg = self
        while pkg is not None:
            yield pkg
            pkg = pkg.parent

    def _freeze(self):
        self.children = MappingProxyType(dict(self.children))
        self.types = MappingProxyType(dict(self.types))
        for child in self.children.values():
            child._freeze()

    def __repr__(self) -> str:
        return f"PackageNode({self.name!r})"


class ResolvedType(NamedTuple):
    """The result of a successful type lookup"""

    # The package the definition was found under
    package: PackageNode
    # The message definition itself
    descriptor: descriptor_pb2.DescriptorProto
    # The fully-qualified name of the definition with a leading '.'
    full_name: str


class PackageRegistry:
    __doc__ = __doc__

    def __init__(self):
        self.root = PackageNode("")
        self._frozen = False

    @classmethod
    def from_files(cls, files: FileInputTypes) -> "PackageRegistry":
        """Build and freeze a registry holding every top-level message of every
        given file

        Args:
            files (FileInputTypes)
                The complete set of input files for this run

        Returns:
            registry (PackageRegistry)
                The frozen registry
        """
        registry = cls()
        for file_proto in to_file_protos(files):
            log.debug(
                "Registering %d messages from %s",
                len(file_proto.message_type),
                file_proto.name,
            )
            for message in file_proto.message_type:
                registry.register(file_proto.package, message)
        registry.freeze()
        return registry

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self):
        """End the build phase. After this, the registry is read-only."""
        if not self._frozen:
            log.debug2("Freezing package registry")
            self.root._freeze()
            self._frozen = True

    ## Build Phase #############################################################

    def register(
        self,
        package_name: Optional[str],
        message: descriptor_pb2.DescriptorProto,
    ):
        """Store the message under its local name in the node for the given
        dotted package name, creating any missing package nodes on the way

        Args:
            package_name (Optional[str])
                The dotted package name. A leading '.' is ignored and an empty
                or None name refers to the root package.
            message (descriptor_pb2.DescriptorProto)
                The message definition to register
        """
        if self._frozen:
            raise RuntimeError(
                f"Cannot register {message.name} on a frozen package registry"
            )
        pkg = self.root
        for segment in split_type_name(package_name or ""):
            child = pkg.children.get(segment)
            if child is None:
                log.debug3("Creating package node %s.%s", pkg.name, segment)
                child = PackageNode(f"{pkg.name}.{segment}", parent=pkg)
                pkg.children[segment] = child
            pkg = child
        log.debug3("Registering type %s.%s", pkg.name, message.name)
        pkg.types[message.name] = message

    ## Resolution ##############################################################

    def find_package(self, package_name: Optional[str]) -> Optional[PackageNode]:
        """Get the node for a dotted package name if it exists"""
        pkg = self.root
        for segment in split_type_name(package_name or ""):
            pkg = pkg.children.get(segment)
            if pkg is None:
                return None
        return pkg

    def lookup_nested_type(
        self,
        message: descriptor_pb2.DescriptorProto,
        name: str,
    ) -> Optional[descriptor_pb2.DescriptorProto]:
        """Walk only the nested types of the given message, one dotted
        component at a time

        Args:
            message (descriptor_pb2.DescriptorProto)
                The message to search within
            name (str)
                The dotted path relative to the message (e.g. "Inner.Deeper")

        Returns:
            nested (Optional[descriptor_pb2.DescriptorProto])
                The nested message or None if any component is missing
        """
        desc = message
        for component in split_type_name(name):
            nested = next(
                (nested for nested in desc.nested_type if nested.name == component),
                None,
            )
            if nested is None:
                log.debug3("No nested message %s in %s", component, desc.name)
                return None
            desc = nested
        return desc

    def lookup_type(
        self,
        package: PackageNode,
        type_name: str,
        enclosing: Optional[ResolvedType] = None,
    ) -> Optional[ResolvedType]:
        """Resolve a field's declared type name from the scope it is used in.

        The strategies are tried in order:
        1. Nested lookup relative to the enclosing message (unqualified names)
        2. Lookup in the current package
        3. Lookup in each ancestor package
        4. Absolute lookup from the root package

        A leading '.' marks a fully-qualified name, in which case only the
        absolute lookup applies.

        Args:
            package (PackageNode)
                The package the reference is made from
            type_name (str)
                The declared type name of the field
            enclosing (Optional[ResolvedType])
                The message the referencing field belongs to

        Returns:
            resolved (Optional[ResolvedType])
                The resolved definition, or None if every strategy failed
        """
        is_absolute = type_name.startswith(".")
        relative_name = type_name.lstrip(".")
        if not relative_name:
            return None

        if not is_absolute:
            if enclosing is not None:
                nested = self.lookup_nested_type(enclosing.descriptor, relative_name)
                if nested is not None:
                    log.debug3("Resolved %s as nested type", type_name)
                    return ResolvedType(
                        package=enclosing.package,
                        descriptor=nested,
                        full_name=f"{enclosing.full_name}.{relative_name}",
                    )
            for pkg in package.ancestors():
                resolved = self._relative_lookup(pkg, relative_name)
                if resolved is not None:
                    log.debug3("Resolved %s relative to %s", type_name, pkg.name)
                    return resolved

        resolved = self._relative_lookup(self.root, relative_name)
        if resolved is None:
            log.debug2("Could not resolve type %s from %s", type_name, package.name)
        return resolved

    ## Implementation Details ##################################################

    def _relative_lookup(
        self,
        package: PackageNode,
        name: str,
    ) -> Optional[ResolvedType]:
        """Look up a dotted name relative to a single package. The first
        component may name a child package or a message whose nested types
        hold the rest of the name.
        """
        head, _, rest = name.partition(".")
        if not rest:
            message = package.types.get(head)
            if message is None:
                return None
            return ResolvedType(package, message, f"{package.name}.{head}")

        child = package.children.get(head)
        if child is not None:
            resolved = self._relative_lookup(child, rest)
            if resolved is not None:
                return resolved

        message = package.types.get(head)
        if message is not None:
            nested = self.lookup_nested_type(message, rest)
            if nested is not None:
                return ResolvedType(package, nested, f"{package.name}.{name}")
        return None

"""
In-memory facility model.

This module defines the model graph that workbook imports populate: intelligent
objects (fixed objects, nodes and links) with declared properties, network
elements that links join, and a bulk-update scope that batches change
notifications. Link connectivity is kept in a networkx multigraph.
"""

import itertools
import logging
from contextlib import contextmanager
from typing import Callable, Dict, Iterator, List, NamedTuple, Optional, Sequence, Tuple

import networkx as nx

logger = logging.getLogger(__name__)

NETWORK_CLASS = "Network"


class FacilityLocation(NamedTuple):
    """A point in facility space."""
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0


class FacilitySize(NamedTuple):
    """Object extents along each axis."""
    length: float = 1.0
    width: float = 1.0
    height: float = 1.0


class PropertyDefinition:
    """Declared property of an object class."""

    VALUE_TYPES = ('string', 'real', 'integer', 'boolean')

    def __init__(
        self,
        name: str,
        value_type: str = 'string',
        default: Optional[str] = None,
        fields: Optional[Sequence['PropertyDefinition']] = None
    ):
        if value_type not in self.VALUE_TYPES:
            raise ValueError(f"Unknown value type: {value_type}")
        self.name = name
        self.value_type = value_type
        self.default = default
        self.fields = list(fields) if fields is not None else None

    @property
    def is_repeating(self) -> bool:
        return self.fields is not None

    def instantiate(self) -> 'Property':
        if self.is_repeating:
            return RepeatingProperty(self)
        return Property(self)


def _check_value(value_type: str, text: str):
    """Raise ValueError if text is not acceptable for the value type."""
    if value_type == 'real':
        float(text)
    elif value_type == 'integer':
        int(text)
    elif value_type == 'boolean':
        if text.strip().lower() not in ('true', 'false', '1', '0'):
            raise ValueError(f"Invalid boolean value: {text!r}")


class Property:
    """A named, settable property value on an object."""

    def __init__(self, definition: PropertyDefinition):
        self.definition = definition
        self._value = definition.default

    @property
    def name(self) -> str:
        return self.definition.name

    @property
    def value(self) -> Optional[str]:
        return self._value

    @value.setter
    def value(self, value):
        if value is None:
            self._value = None
            return
        text = str(value)
        _check_value(self.definition.value_type, text)
        self._value = text

    def __repr__(self):
        return f"<Property {self.name}={self._value!r}>"


class PropertyRow:
    """One row of a repeating property."""

    def __init__(self, fields: Sequence[PropertyDefinition]):
        self.properties: List[Property] = [field.instantiate() for field in fields]

    def values(self) -> Dict[str, Optional[str]]:
        return {prop.name: prop.value for prop in self.properties}


class PropertyRowCollection:
    """Ordered rows of a repeating property."""

    def __init__(self, fields: Sequence[PropertyDefinition]):
        self._fields = fields
        self._rows: List[PropertyRow] = []

    def create(self) -> PropertyRow:
        row = PropertyRow(self._fields)
        self._rows.append(row)
        return row

    def __len__(self) -> int:
        return len(self._rows)

    def __iter__(self) -> Iterator[PropertyRow]:
        return iter(self._rows)

    def __getitem__(self, index: int) -> PropertyRow:
        # No negative indexing: rows are addressed by position only
        if index < 0 or index >= len(self._rows):
            raise IndexError(f"Row index {index} out of range (rows={len(self._rows)})")
        return self._rows[index]


class RepeatingProperty(Property):
    """A tabular property: a header value plus rows of named sub-fields."""

    def __init__(self, definition: PropertyDefinition):
        super().__init__(definition)
        self.rows = PropertyRowCollection(definition.fields)

    @property
    def value(self) -> Optional[str]:
        return self._value

    @value.setter
    def value(self, value):
        self._value = None if value is None else str(value)


class ObjectClass:
    """Definition of an intelligent object class."""

    KINDS = ('fixed', 'node', 'link')

    def __init__(
        self,
        name: str,
        kind: str = 'fixed',
        default_size: FacilitySize = FacilitySize(),
        properties: Sequence[PropertyDefinition] = (),
        external_nodes: Sequence[Tuple[str, str]] = ()
    ):
        if kind not in self.KINDS:
            raise ValueError(f"Unknown object kind: {kind}")
        self.name = name
        self.kind = kind
        self.default_size = default_size
        self.properties = list(properties)
        # (prefix, node class) pairs, e.g. ("Input", "BasicNode") -> Input@Server1
        self.external_nodes = list(external_nodes)


class IntelligentObject:
    """An object instance placed in the facility."""

    is_node = False
    is_link = False

    def __init__(self, object_class: ObjectClass, name: str, location: FacilityLocation):
        self.object_class = object_class
        self.name = name
        self._location = location
        self._size = object_class.default_size
        self.properties: List[Property] = [d.instantiate() for d in object_class.properties]
        self.external_nodes: List['NodeObject'] = []
        self.parent: Optional['IntelligentObject'] = None
        self._model: Optional['FacilityModel'] = None

    @property
    def class_name(self) -> str:
        return self.object_class.name

    @property
    def location(self) -> FacilityLocation:
        return self._location

    @location.setter
    def location(self, location: FacilityLocation):
        self._location = FacilityLocation(*location)
        self._changed()

    @property
    def size(self) -> FacilitySize:
        return self._size

    @size.setter
    def size(self, size: FacilitySize):
        self._size = FacilitySize(*size)
        self._changed()

    def find_property(self, name: str) -> Optional[Property]:
        """Find a declared property by exact name."""
        for prop in self.properties:
            if prop.name == name:
                return prop
        return None

    def _changed(self):
        if self._model is not None:
            self._model._notify('changed', self)

    def __repr__(self):
        return f"<{type(self).__name__} {self.name} ({self.class_name})>"


class NodeObject(IntelligentObject):
    """A node that links connect to."""

    is_node = True


class LinkObject(IntelligentObject):
    """A link between two nodes with an ordered vertex path."""

    is_link = True

    def __init__(
        self,
        object_class: ObjectClass,
        name: str,
        from_node: NodeObject,
        to_node: NodeObject,
        vertices: Sequence[FacilityLocation]
    ):
        super().__init__(object_class, name, from_node.location)
        self.from_node = from_node
        self.to_node = to_node
        self.vertices: List[FacilityLocation] = [FacilityLocation(*v) for v in vertices]
        self.networks: List['NetworkElement'] = []


class NetworkElement:
    """A named grouping of links."""

    def __init__(self, name: str):
        self.name = name
        self.links: List[LinkObject] = []

    def add(self, link: LinkObject):
        """Add a link to the network; adding twice has no effect."""
        if link not in self.links:
            self.links.append(link)
        if self not in link.networks:
            link.networks.append(self)

    def discard(self, link: LinkObject):
        if link in self.links:
            self.links.remove(link)
        if self in link.networks:
            link.networks.remove(self)

    def __repr__(self):
        return f"<NetworkElement {self.name} links={len(self.links)}>"


def _assignments(prefix: str) -> PropertyDefinition:
    """Repeating state-assignment property, e.g. AssignmentsOnEntering."""
    return PropertyDefinition(prefix, fields=[
        PropertyDefinition(f"{prefix}StateVariableName"),
        PropertyDefinition(f"{prefix}NewValue"),
    ])


def _build_default_library() -> Dict[str, ObjectClass]:
    node_size = FacilitySize(0.2, 0.2, 0.2)
    link_size = FacilitySize(1.0, 0.1, 0.1)
    classes = [
        ObjectClass('BasicNode', 'node', node_size, [
            PropertyDefinition('OutboundLinkRule', default='Shortest Path'),
            _assignments('AssignmentsOnEntering'),
        ]),
        ObjectClass('TransferNode', 'node', node_size, [
            PropertyDefinition('OutboundLinkRule', default='Shortest Path'),
            PropertyDefinition('EntityDestinationType', default='Continue'),
            PropertyDefinition('RideOnTransporter', 'boolean', default='False'),
            _assignments('AssignmentsOnEntering'),
        ]),
        ObjectClass('Source', 'fixed', FacilitySize(2.0, 2.0, 1.0), [
            PropertyDefinition('EntityType', default='DefaultEntity'),
            PropertyDefinition('InterarrivalTime', default='Random.Exponential(1)'),
            PropertyDefinition('EntitiesPerArrival', 'integer', default='1'),
            PropertyDefinition('MaximumArrivals', 'integer'),
            _assignments('AssignmentsOnEntering'),
        ], external_nodes=[('Output', 'TransferNode')]),
        ObjectClass('Server', 'fixed', FacilitySize(2.0, 2.0, 1.0), [
            PropertyDefinition('InitialCapacity', 'integer', default='1'),
            PropertyDefinition('ProcessingTime', default='Random.Triangular(.1,.2,.3)'),
            PropertyDefinition('InputBufferCapacity', 'integer', default='0'),
            PropertyDefinition('OutputBufferCapacity', 'integer', default='0'),
            _assignments('AssignmentsOnEntering'),
        ], external_nodes=[('Input', 'BasicNode'), ('Output', 'TransferNode')]),
        ObjectClass('Combiner', 'fixed', FacilitySize(2.0, 2.0, 1.0), [
            PropertyDefinition('BatchQuantity', 'integer', default='1'),
            PropertyDefinition('ProcessingTime', default='0'),
        ], external_nodes=[('ParentInput', 'BasicNode'), ('MemberInput', 'BasicNode'),
                           ('Output', 'TransferNode')]),
        ObjectClass('Separator', 'fixed', FacilitySize(2.0, 2.0, 1.0), [
            PropertyDefinition('SplitQuantity', 'integer', default='1'),
            PropertyDefinition('ProcessingTime', default='0'),
        ], external_nodes=[('Input', 'BasicNode'), ('ParentOutput', 'TransferNode'),
                           ('MemberOutput', 'TransferNode')]),
        ObjectClass('Sink', 'fixed', FacilitySize(2.0, 2.0, 1.0), [
            PropertyDefinition('TransferInTime', 'real', default='0'),
            _assignments('AssignmentsOnEntering'),
        ], external_nodes=[('Input', 'BasicNode')]),
        ObjectClass('Path', 'link', link_size, [
            PropertyDefinition('Type', default='Unidirectional'),
            PropertyDefinition('DrawnToScale', 'boolean', default='True'),
            PropertyDefinition('LogicalLength', 'real'),
            PropertyDefinition('SpeedLimit', 'real'),
            PropertyDefinition('AllowPassing', 'boolean', default='True'),
            PropertyDefinition('SelectionWeight', default='1'),
        ]),
        ObjectClass('TimePath', 'link', link_size, [
            PropertyDefinition('Type', default='Unidirectional'),
            PropertyDefinition('TravelTime', default='0'),
            PropertyDefinition('TravelerCapacity', 'integer'),
            PropertyDefinition('SelectionWeight', default='1'),
        ]),
        ObjectClass('Connector', 'link', link_size, [
            PropertyDefinition('SelectionWeight', default='1'),
        ]),
        ObjectClass('Conveyor', 'link', link_size, [
            PropertyDefinition('DesiredSpeed', 'real', default='1'),
            PropertyDefinition('AccumulationType', default='Accumulating'),
            PropertyDefinition('InitialCapacity', 'integer'),
            PropertyDefinition('SelectionWeight', default='1'),
        ]),
    ]
    return {cls.name: cls for cls in classes}


DEFAULT_CLASS_LIBRARY: Dict[str, ObjectClass] = _build_default_library()


class FacilityModel:
    """
    Mutable facility model graph.

    Objects are addressed by unique name. Nodes are the vertices of ``graph``
    and links are keyed edges between them, so connectivity questions can be
    answered with networkx directly.
    """

    def __init__(self, name: str = 'Model', class_library: Optional[Dict[str, ObjectClass]] = None):
        self.name = name
        self.class_library = dict(class_library if class_library is not None else DEFAULT_CLASS_LIBRARY)
        self.graph = nx.MultiDiGraph()
        self._objects: Dict[str, IntelligentObject] = {}
        self._elements: Dict[str, NetworkElement] = {}
        self._listeners: List[Callable[[str, object], None]] = []
        self._pending: List[Tuple[str, object]] = []
        self._bulk_depth = 0
        self._name_counters: Dict[str, itertools.count] = {}

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def find_object(self, name: str) -> Optional[IntelligentObject]:
        return self._objects.get(name)

    @property
    def objects(self) -> List[IntelligentObject]:
        return list(self._objects.values())

    @property
    def nodes(self) -> List[NodeObject]:
        return [obj for obj in self._objects.values() if obj.is_node]

    @property
    def links(self) -> List[LinkObject]:
        return [obj for obj in self._objects.values() if obj.is_link]

    def find_element(self, name: str) -> Optional[NetworkElement]:
        return self._elements.get(name)

    @property
    def elements(self) -> List[NetworkElement]:
        return list(self._elements.values())

    def __contains__(self, name: str) -> bool:
        return name in self._objects

    def __len__(self) -> int:
        return len(self._objects)

    # ------------------------------------------------------------------
    # Object factories
    # ------------------------------------------------------------------

    def create_object(self, class_name: str, location: FacilityLocation) -> Optional[IntelligentObject]:
        """
        Create a fixed object or node of the given class.

        Returns None when the class is unknown or is a link class.
        """
        object_class = self.class_library.get(class_name)
        if object_class is None or object_class.kind == 'link':
            logger.debug(f"Cannot create object of class {class_name!r}")
            return None

        obj = self._instantiate(object_class, location)
        for prefix, node_class_name in object_class.external_nodes:
            node_class = self.class_library[node_class_name]
            node = NodeObject(node_class, f"{prefix}@{obj.name}", obj.location)
            node.parent = obj
            obj.external_nodes.append(node)
            self._register(node)
        return obj

    def create_link(
        self,
        class_name: str,
        from_node: NodeObject,
        to_node: NodeObject,
        vertices: Sequence[FacilityLocation] = ()
    ) -> Optional[LinkObject]:
        """
        Create a link between two nodes of this model.

        Returns None when the class is not a link class or an endpoint is not
        a node registered in this model.
        """
        object_class = self.class_library.get(class_name)
        if object_class is None or object_class.kind != 'link':
            logger.debug(f"Cannot create link of class {class_name!r}")
            return None
        for node in (from_node, to_node):
            if node is None or not node.is_node or self._objects.get(node.name) is not node:
                logger.debug(f"Link endpoint {node!r} is not a node of this model")
                return None

        link = LinkObject(object_class, self._next_name(class_name), from_node, to_node, vertices)
        self._register(link)
        self.graph.add_edge(from_node, to_node, key=link, link=link)
        return link

    def _instantiate(self, object_class: ObjectClass, location: FacilityLocation) -> IntelligentObject:
        cls = NodeObject if object_class.kind == 'node' else IntelligentObject
        prefixes = [prefix for prefix, _ in object_class.external_nodes]
        obj = cls(object_class, self._next_name(object_class.name, prefixes), FacilityLocation(*location))
        self._register(obj)
        return obj

    def _register(self, obj: IntelligentObject):
        if obj.name in self._objects:
            raise ValueError(f"An object named {obj.name!r} already exists")
        obj._model = self
        self._objects[obj.name] = obj
        if obj.is_node:
            self.graph.add_node(obj)
        self._notify('added', obj)

    def _next_name(self, class_name: str, external_prefixes: Sequence[str] = ()) -> str:
        """Next free generated name; external node names derived from it must be free too."""
        counter = self._name_counters.setdefault(class_name, itertools.count(1))
        while True:
            name = f"{class_name}{next(counter)}"
            taken = [name] + [f"{prefix}@{name}" for prefix in external_prefixes]
            if not any(candidate in self._objects for candidate in taken):
                return name

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def rename_object(self, obj: IntelligentObject, name: str):
        """
        Give an object a new unique name; external nodes follow it.

        All target names are checked before anything is renamed, so a clash
        leaves the object and its external nodes untouched.
        """
        if not name:
            raise ValueError("Object name cannot be empty")
        if self._objects.get(obj.name) is not obj:
            raise ValueError(f"{obj!r} does not belong to this model")
        if name == obj.name:
            return

        renames = [(obj, name)]
        for node in obj.external_nodes:
            prefix = node.name.split('@', 1)[0]
            renames.append((node, f"{prefix}@{name}"))

        for target, new_name in renames:
            existing = self._objects.get(new_name)
            if existing is not None and existing is not target:
                raise ValueError(f"An object named {new_name!r} already exists")

        for target, _ in renames:
            del self._objects[target.name]
        for target, new_name in renames:
            target.name = new_name
            self._objects[new_name] = target
            self._notify('renamed', target)

    def remove_object(self, obj: IntelligentObject):
        """Remove an object. Removing a node also removes its attached links."""
        if self._objects.get(obj.name) is not obj:
            raise ValueError(f"{obj!r} does not belong to this model")

        if obj.is_link:
            self.graph.remove_edge(obj.from_node, obj.to_node, key=obj)
            for network in list(obj.networks):
                network.discard(obj)
        elif obj.is_node:
            attached = {key for _, _, key in self.graph.in_edges(obj, keys=True)}
            attached.update(key for _, _, key in self.graph.out_edges(obj, keys=True))
            for link in attached:
                self.remove_object(link)
            self.graph.remove_node(obj)

        for node in list(obj.external_nodes):
            self.remove_object(node)
        if obj.parent is not None and obj in obj.parent.external_nodes:
            obj.parent.external_nodes.remove(obj)

        del self._objects[obj.name]
        obj._model = None
        self._notify('removed', obj)

    # ------------------------------------------------------------------
    # Elements
    # ------------------------------------------------------------------

    def create_element(self, class_name: str) -> NetworkElement:
        """Create an element with a generated name. Only networks are supported."""
        if class_name != NETWORK_CLASS:
            raise ValueError(f"Unsupported element class: {class_name}")
        index = len(self._elements) + 1
        while f"{class_name}{index}" in self._elements:
            index += 1
        element = NetworkElement(f"{class_name}{index}")
        self._elements[element.name] = element
        self._notify('added', element)
        return element

    def rename_element(self, element: NetworkElement, name: str):
        if name in self._elements and self._elements[name] is not element:
            raise ValueError(f"An element named {name!r} already exists")
        del self._elements[element.name]
        element.name = name
        self._elements[name] = element
        self._notify('renamed', element)

    def network_graph(self, name: str) -> nx.MultiDiGraph:
        """Sub-graph made of the links that belong to a network."""
        network = self._elements.get(name)
        if network is None:
            raise KeyError(name)
        return self.graph.edge_subgraph(
            (link.from_node, link.to_node, link) for link in network.links
        )

    # ------------------------------------------------------------------
    # Change notification
    # ------------------------------------------------------------------

    def subscribe(self, callback: Callable[[str, object], None]):
        """Register a callback(event, item) for model changes."""
        self._listeners.append(callback)

    def _notify(self, event: str, item: object):
        if self._bulk_depth:
            self._pending.append((event, item))
            return
        for callback in self._listeners:
            callback(event, item)

    @property
    def in_bulk_update(self) -> bool:
        return self._bulk_depth > 0

    @contextmanager
    def bulk_update(self):
        """
        Batch mutations; queued notifications are published when the
        outermost scope exits.
        """
        self._bulk_depth += 1
        try:
            yield self
        finally:
            self._bulk_depth -= 1
            if self._bulk_depth == 0:
                pending, self._pending = self._pending, []
                logger.debug(f"Bulk update complete: publishing {len(pending)} changes")
                for event, item in pending:
                    for callback in self._listeners:
                        callback(event, item)

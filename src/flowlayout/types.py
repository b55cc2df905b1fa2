"""Shared type definitions for flowlayout.

Enums and element type tags used across the model, graph builder, engine
and pipeline steps.
"""

from __future__ import annotations

from enum import Enum, auto


class Direction(Enum):
    RIGHT = auto()
    DOWN = auto()
    LEFT = auto()
    UP = auto()

    @classmethod
    def default(cls) -> Direction:
        return cls.RIGHT

    @classmethod
    def parse(cls, value: str | Direction) -> Direction:
        if isinstance(value, Direction):
            return value
        key = value.strip().upper()
        aliases = {"LR": "RIGHT", "RL": "LEFT", "TD": "DOWN", "TB": "DOWN", "BT": "UP"}
        key = aliases.get(key, key)
        try:
            return cls[key]
        except KeyError:
            raise ValueError(f"Unknown direction '{value}'; use RIGHT, DOWN, LEFT or UP") from None

    @property
    def is_horizontal(self) -> bool:
        return self in (Direction.RIGHT, Direction.LEFT)


class LaneStrategy(Enum):
    PRESERVE = auto()  # keep the order lanes had before layout
    OPTIMIZE = auto()  # reorder lanes to shorten cross-lane flows

    @classmethod
    def default(cls) -> LaneStrategy:
        return cls.PRESERVE


class Compactness(Enum):
    COMPACT = auto()
    NORMAL = auto()
    SPACIOUS = auto()

    @classmethod
    def default(cls) -> Compactness:
        return cls.NORMAL


class Side(Enum):
    TOP = auto()
    BOTTOM = auto()
    LEFT = auto()
    RIGHT = auto()


# ─── Element type tags ───────────────────────────────────────────────────────

PARTICIPANT = "bpmn:Participant"
LANE = "bpmn:Lane"
SUB_PROCESS = "bpmn:SubProcess"
TRANSACTION = "bpmn:Transaction"
AD_HOC_SUB_PROCESS = "bpmn:AdHocSubProcess"
BOUNDARY_EVENT = "bpmn:BoundaryEvent"
SEQUENCE_FLOW = "bpmn:SequenceFlow"
MESSAGE_FLOW = "bpmn:MessageFlow"
ASSOCIATION = "bpmn:Association"
DATA_INPUT_ASSOCIATION = "bpmn:DataInputAssociation"
DATA_OUTPUT_ASSOCIATION = "bpmn:DataOutputAssociation"
TEXT_ANNOTATION = "bpmn:TextAnnotation"
DATA_OBJECT_REFERENCE = "bpmn:DataObjectReference"
DATA_STORE_REFERENCE = "bpmn:DataStoreReference"
GROUP = "bpmn:Group"
PROCESS = "bpmn:Process"
COLLABORATION = "bpmn:Collaboration"
LABEL = "label"

CONNECTION_TYPES: frozenset[str] = frozenset(
    {SEQUENCE_FLOW, MESSAGE_FLOW, ASSOCIATION, DATA_INPUT_ASSOCIATION, DATA_OUTPUT_ASSOCIATION}
)
SUB_PROCESS_TYPES: frozenset[str] = frozenset({SUB_PROCESS, TRANSACTION, AD_HOC_SUB_PROCESS})
ARTIFACT_TYPES: frozenset[str] = frozenset(
    {TEXT_ANNOTATION, DATA_OBJECT_REFERENCE, DATA_STORE_REFERENCE, GROUP}
)
ROOT_TYPES: frozenset[str] = frozenset({PROCESS, COLLABORATION})

# Shapes whose label is drawn outside their bounds.
EXTERNAL_LABEL_TYPES: frozenset[str] = frozenset(
    {
        "bpmn:StartEvent",
        "bpmn:EndEvent",
        "bpmn:IntermediateCatchEvent",
        "bpmn:IntermediateThrowEvent",
        BOUNDARY_EVENT,
        "bpmn:ExclusiveGateway",
        "bpmn:ParallelGateway",
        "bpmn:InclusiveGateway",
        "bpmn:EventBasedGateway",
        "bpmn:ComplexGateway",
        DATA_OBJECT_REFERENCE,
        DATA_STORE_REFERENCE,
    }
)

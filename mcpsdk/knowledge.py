"""A knowledge graph of entities, relations and observations, kept in a store."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol


@dataclass
class Entity:
    """A node of the knowledge graph, with the facts observed about it."""

    name: str
    entity_type: str = ""
    observations: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class Relation:
    """A directed edge between two entities."""

    from_: str
    to: str
    relation_type: str = ""


@dataclass
class Observation:
    """Facts about an entity.

    ``contents`` holds facts to add; ``observations`` holds facts to delete.
    """

    entity_name: str
    contents: list[str] = field(default_factory=list)
    observations: list[str] = field(default_factory=list)


@dataclass
class KnowledgeGraph:
    """The complete graph: every entity and every relation."""

    entities: list[Entity] = field(default_factory=list)
    relations: list[Relation] = field(default_factory=list)


class _Store(Protocol):
    def read(self) -> bytes: ...

    def write(self, data: bytes) -> None: ...


class MemoryStore:
    """Keeps the stored data in memory; it is lost when the process exits."""

    def __init__(self, data: bytes = b"") -> None:
        self._data = bytes(data)

    def read(self) -> bytes:
        """Return the stored data."""
        return self._data

    def write(self, data: bytes) -> None:
        """Replace the stored data."""
        self._data = bytes(data)


class FileStore:
    """Keeps the stored data in a file."""

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self.path = os.fspath(path)

    def read(self) -> bytes:
        """Return the file's contents, or empty bytes if the file does not exist."""
        try:
            with open(self.path, "rb") as f:
                return f.read()
        except FileNotFoundError:
            return b""
        except OSError as err:
            raise OSError(f"failed to read file {self.path}: {err}") from err

    def write(self, data: bytes) -> None:
        """Write the data to the file, creating it readable by its owner only."""
        try:
            fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
            with os.fdopen(fd, "wb") as f:
                f.write(data)
        except OSError as err:
            raise OSError(f"failed to write file {self.path}: {err}") from err


def _string(item: dict[str, Any], key: str) -> str:
    value = item.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"failed to unmarshal from store: field {key!r} must be a string")
    return value


def _strings(item: dict[str, Any], key: str) -> list[str]:
    value = item.get(key)
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ValueError(f"failed to unmarshal from store: field {key!r} must be a list of strings")
    return list(value)


def _entity_item(entity: Entity) -> dict[str, Any]:
    item: dict[str, Any] = {"type": "entity"}
    if entity.name:
        item["name"] = entity.name
    if entity.entity_type:
        item["entityType"] = entity.entity_type
    if entity.observations:
        item["observations"] = list(entity.observations)
    return item


def _relation_item(relation: Relation) -> dict[str, Any]:
    item: dict[str, Any] = {"type": "relation"}
    if relation.from_:
        item["from"] = relation.from_
    if relation.to:
        item["to"] = relation.to
    if relation.relation_type:
        item["relationType"] = relation.relation_type
    return item


def _linked_relations(relations: list[Relation], names: set[str]) -> list[Relation]:
    return [r for r in relations if r.from_ in names and r.to in names]


class KnowledgeBase:
    """Manages entities and relations, persisting every change to a store."""

    def __init__(self, store: _Store) -> None:
        self.store = store

    def load_graph(self) -> KnowledgeGraph:
        """Read the graph from the store; an empty store gives an empty graph."""
        try:
            data = self.store.read()
        except OSError as err:
            raise OSError(f"failed to read from store: {err}") from err
        if not data:
            return KnowledgeGraph()

        try:
            items = json.loads(data)
        except ValueError as err:
            raise ValueError(f"failed to unmarshal from store: {err}") from err
        if items is None:
            return KnowledgeGraph()
        if not isinstance(items, list):
            raise ValueError("failed to unmarshal from store: expected a JSON array")

        graph = KnowledgeGraph()
        for item in items:
            if not isinstance(item, dict):
                raise ValueError("failed to unmarshal from store: expected a JSON object")
            kind = _string(item, "type")
            if kind == "entity":
                graph.entities.append(
                    Entity(
                        name=_string(item, "name"),
                        entity_type=_string(item, "entityType"),
                        observations=_strings(item, "observations"),
                    )
                )
            elif kind == "relation":
                graph.relations.append(
                    Relation(
                        from_=_string(item, "from"),
                        to=_string(item, "to"),
                        relation_type=_string(item, "relationType"),
                    )
                )
        return graph

    def save_graph(self, graph: KnowledgeGraph) -> None:
        """Serialise the graph and write it to the store."""
        items = [_entity_item(e) for e in graph.entities]
        items += [_relation_item(r) for r in graph.relations]
        data = json.dumps(items, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
        try:
            self.store.write(data)
        except OSError as err:
            raise OSError(f"failed to write to store: {err}") from err

    def create_entities(self, entities: list[Entity]) -> list[Entity]:
        """Add entities whose names are new; return those actually added."""
        graph = self.load_graph()
        names = {e.name for e in graph.entities}
        added = []
        for entity in entities:
            if entity.name not in names:
                names.add(entity.name)
                added.append(entity)
                graph.entities.append(entity)
        self.save_graph(graph)
        return added

    def create_relations(self, relations: list[Relation]) -> list[Relation]:
        """Add relations that do not already exist; return those actually added."""
        graph = self.load_graph()
        added = []
        for relation in relations:
            if relation not in graph.relations:
                added.append(relation)
                graph.relations.append(relation)
        self.save_graph(graph)
        return added

    def add_observations(self, observations: list[Observation]) -> list[Observation]:
        """Append new facts to existing entities; return the facts actually added.

        Raises LookupError if an entity does not exist; nothing is saved then.
        """
        graph = self.load_graph()
        by_name = {e.name: e for e in reversed(graph.entities)}
        results = []
        for obs in observations:
            entity = by_name.get(obs.entity_name)
            if entity is None:
                raise LookupError(f"entity with name {obs.entity_name} not found")
            new = []
            for content in obs.contents:
                if content not in entity.observations:
                    new.append(content)
                    entity.observations.append(content)
            results.append(Observation(entity_name=obs.entity_name, contents=new))
        self.save_graph(graph)
        return results

    def delete_entities(self, entity_names: list[str]) -> None:
        """Remove the named entities and every relation touching them."""
        graph = self.load_graph()
        doomed = set(entity_names)
        graph.entities = [e for e in graph.entities if e.name not in doomed]
        graph.relations = [
            r for r in graph.relations if r.from_ not in doomed and r.to not in doomed
        ]
        self.save_graph(graph)

    def delete_observations(self, deletions: list[Observation]) -> None:
        """Remove specific facts from entities; unknown entities are skipped."""
        graph = self.load_graph()
        by_name = {e.name: e for e in reversed(graph.entities)}
        for deletion in deletions:
            entity = by_name.get(deletion.entity_name)
            if entity is None:
                continue
            doomed = set(deletion.observations)
            entity.observations = [o for o in entity.observations if o not in doomed]
        self.save_graph(graph)

    def delete_relations(self, relations: list[Relation]) -> None:
        """Remove the given relations from the graph."""
        graph = self.load_graph()
        doomed = set(relations)
        graph.relations = [r for r in graph.relations if r not in doomed]
        self.save_graph(graph)

    def search_nodes(self, query: str) -> KnowledgeGraph:
        """Return entities whose name, type or facts contain ``query``, ignoring case.

        Relations are kept only when both ends were found.
        """
        graph = self.load_graph()
        needle = query.lower()
        found = [
            e
            for e in graph.entities
            if needle in e.name.lower()
            or needle in e.entity_type.lower()
            or any(needle in o.lower() for o in e.observations)
        ]
        names = {e.name for e in found}
        return KnowledgeGraph(entities=found, relations=_linked_relations(graph.relations, names))

    def open_nodes(self, names: list[str]) -> KnowledgeGraph:
        """Return the named entities and the relations between them."""
        graph = self.load_graph()
        wanted = set(names)
        found = [e for e in graph.entities if e.name in wanted]
        found_names = {e.name for e in found}
        return KnowledgeGraph(
            entities=found, relations=_linked_relations(graph.relations, found_names)
        )
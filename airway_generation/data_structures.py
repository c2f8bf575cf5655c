from dataclasses import dataclass, field
from typing import List, Dict, Tuple, Optional, Iterator
import numpy as np
import networkx as nx

from .chest_conventions import ChestType

class MissingParticleFieldError(ValueError):
    """Raised when a particle dataset lacks a required per-particle array"""

@dataclass(frozen=True, eq=False)
class Particle:
    """A single airway particle"""
    index: int
    position: np.ndarray
    scale: float
    hevec2: np.ndarray
    chest_type: ChestType = ChestType.UNDEFINEDTYPE

class ParticleSet:
    """Column storage for a set of airway particles"""

    def __init__(self, positions: np.ndarray, scales: Optional[np.ndarray],
                 hevec2: Optional[np.ndarray], chest_types: Optional[np.ndarray] = None):
        """Initialize a particle set

        Args:
            positions: (N, 3) particle positions
            scales: (N,) particle scales
            hevec2: (N, 3) minor Hessian eigenvectors
            chest_types: Optional (N,) chest type codes, undefined if omitted
        """
        positions = np.array(positions, dtype=float).reshape(-1, 3)
        n = len(positions)

        if scales is None:
            raise MissingParticleFieldError("Particle dataset has no 'scale' array")
        scales = np.array(scales, dtype=float).reshape(-1)
        if len(scales) != n:
            raise MissingParticleFieldError(
                f"'scale' array has {len(scales)} entries for {n} particles")

        if hevec2 is None:
            raise MissingParticleFieldError("Particle dataset has no 'hevec2' array")
        hevec2 = np.array(hevec2, dtype=float)
        if hevec2.size != 3 * n:
            raise MissingParticleFieldError(
                f"'hevec2' array has {hevec2.size} values for {n} particles")
        hevec2 = hevec2.reshape(n, 3)

        if chest_types is None:
            chest_types = np.full(n, int(ChestType.UNDEFINEDTYPE), dtype=np.int64)
        else:
            chest_types = np.asarray(chest_types).reshape(-1).astype(np.int64)
            if len(chest_types) != n:
                raise MissingParticleFieldError(
                    f"'ChestType' array has {len(chest_types)} entries for {n} particles")

        self.positions = positions
        self.scales = scales
        self.hevec2 = hevec2
        self.chest_types = chest_types
        for array in (self.positions, self.scales, self.hevec2, self.chest_types):
            array.setflags(write=False)

    def __len__(self) -> int:
        return len(self.positions)

    def position(self, i: int) -> np.ndarray:
        return self.positions[i]

    def scale(self, i: int) -> float:
        return float(self.scales[i])

    def hevec2_of(self, i: int) -> np.ndarray:
        return self.hevec2[i]

    def chest_type(self, i: int) -> ChestType:
        """Label of particle i, UNDEFINEDTYPE for codes outside the airway generation table"""
        try:
            return ChestType(int(self.chest_types[i]))
        except ValueError:
            return ChestType.UNDEFINEDTYPE

    def particle(self, i: int) -> Particle:
        return Particle(index=i,
                        position=self.positions[i],
                        scale=float(self.scales[i]),
                        hevec2=self.hevec2[i],
                        chest_type=self.chest_type(i))

    def __iter__(self) -> Iterator[Particle]:
        for i in range(len(self)):
            yield self.particle(i)

    def with_chest_types(self, chest_types: np.ndarray) -> 'ParticleSet':
        """Return a copy of this set carrying the given labels"""
        return ParticleSet(self.positions, self.scales, self.hevec2, chest_types)

@dataclass(frozen=True)
class Edge:
    """Undirected connection between two particles"""
    index1: int
    index2: int
    weight: float = 0.0

    def __post_init__(self):
        if self.index1 == self.index2:
            raise ValueError("An edge must join two different particles")
        if self.index1 > self.index2:
            low, high = self.index2, self.index1
            object.__setattr__(self, 'index1', low)
            object.__setattr__(self, 'index2', high)

    def other(self, index: int) -> int:
        return self.index2 if index == self.index1 else self.index1

class ParticleGraph:
    """Adjacency graph over a particle set"""

    def __init__(self, n_particles: int, edges: Optional[List[Edge]] = None):
        self.n_particles = n_particles
        self.edges: List[Edge] = []
        self._keys = set()
        for edge in edges or []:
            self.add_edge(edge)

    def add_edge(self, edge: Edge) -> None:
        """Add an edge, ignoring repeated particle pairs"""
        if edge.index2 >= self.n_particles:
            raise IndexError(f"Edge {edge} references a particle outside the graph")
        key = (edge.index1, edge.index2)
        if key in self._keys:
            return
        self._keys.add(key)
        self.edges.append(edge)

    def has_edge(self, i: int, j: int) -> bool:
        return (min(i, j), max(i, j)) in self._keys

    def to_networkx(self) -> nx.Graph:
        G = nx.Graph()
        G.add_nodes_from(range(self.n_particles))
        for edge in self.edges:
            G.add_edge(edge.index1, edge.index2, weight=edge.weight)
        return G

    def connected_components(self) -> List[List[int]]:
        """Components as sorted index lists, ordered by their lowest index"""
        components = [sorted(c) for c in nx.connected_components(self.to_networkx())]
        return sorted(components, key=lambda c: c[0])

@dataclass
class ParticleTree:
    """Rooted tree over one connected component"""
    root: int
    order: List[int]  # Breadth-first order, root first
    parent: Dict[int, int] = field(default_factory=dict)
    _children: Dict[int, List[int]] = field(init=False, default_factory=dict, repr=False)

    def __post_init__(self):
        for node in self.order:
            if node in self.parent:
                self._children.setdefault(self.parent[node], []).append(node)

    def __len__(self) -> int:
        return len(self.order)

    def children(self, node: int) -> List[int]:
        return self._children.get(node, [])

    def is_leaf(self, node: int) -> bool:
        return not self.children(node)

class OrientedForest:
    """Collection of rooted trees covering every particle exactly once"""

    def __init__(self, n_particles: int, trees: List[ParticleTree]):
        self.n_particles = n_particles
        self.trees = trees
        self._parents = np.full(n_particles, -1, dtype=np.int64)
        for tree in trees:
            for child, parent in tree.parent.items():
                self._parents[child] = parent

    def __len__(self) -> int:
        return len(self.trees)

    def parent_of(self, index: int) -> int:
        """Parent particle index, -1 for roots"""
        return int(self._parents[index])

    def roots(self) -> List[int]:
        return [tree.root for tree in self.trees]

    def edges(self) -> List[Tuple[int, int]]:
        """Directed (parent, child) pairs"""
        return [(parent, child) for tree in self.trees
                for child, parent in tree.parent.items()]

    def to_networkx(self) -> nx.DiGraph:
        G = nx.DiGraph()
        G.add_nodes_from(range(self.n_particles))
        G.add_edges_from(self.edges())
        return G

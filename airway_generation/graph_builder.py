import logging
import numpy as np
from tqdm import tqdm
from scipy.spatial import cKDTree
from typing import List
import networkx as nx

from .config import LabelingConfig
from .connectivity import ConnectivityEvaluator
from .data_structures import ParticleSet, Edge, ParticleGraph, ParticleTree, OrientedForest

logger = logging.getLogger(__name__)

def build_graph(particles: ParticleSet, config: LabelingConfig) -> ParticleGraph:
    """Build the particle adjacency graph

    Candidate pairs come from a bounded radius search so that only particles
    within the distance threshold are handed to the connectivity test.

    Args:
        particles: Input particles
        config: Connection thresholds

    Returns:
        ParticleGraph: Undirected weighted graph over all particles
    """
    n = len(particles)
    graph = ParticleGraph(n)
    logger.info(f"Building particle graph over {n} particles...")
    if n < 2:
        return graph

    tree = cKDTree(particles.positions)
    pairs = tree.query_pairs(config.particle_distance_threshold, output_type='ndarray')
    if len(pairs) > 0:
        # Deterministic edge order
        pairs = pairs[np.lexsort((pairs[:, 1], pairs[:, 0]))]
    logger.info(f"Found {len(pairs)} candidate pairs within {config.particle_distance_threshold} mm")

    evaluator = ConnectivityEvaluator(particles, config)
    for i, j in tqdm(pairs, desc="Evaluating particle pairs", disable=len(pairs) < 1000):
        weight = evaluator.evaluate(int(i), int(j))
        if weight is not None:
            graph.add_edge(Edge(int(i), int(j), weight))

    logger.info(f"Built graph with {n} nodes and {len(graph.edges)} edges")
    return graph

def select_root(component: List[int], particles: ParticleSet) -> int:
    """Root of a component: the largest-scale particle, lowest index on ties

    The largest airway in a component is taken to be closest to the trachea.
    """
    return min(component, key=lambda i: (-particles.scale(i), i))

def build_forest(graph: ParticleGraph, particles: ParticleSet) -> OrientedForest:
    """Impose flow direction on the particle graph

    Each connected component is reduced to its minimum spanning tree and
    oriented away from its root by a breadth-first traversal that visits
    neighbours in ascending index order.

    Args:
        graph: Particle adjacency graph
        particles: Particles the graph was built from

    Returns:
        OrientedForest: One rooted tree per connected component
    """
    if len(particles) != graph.n_particles:
        raise ValueError(f"Graph has {graph.n_particles} nodes but {len(particles)} particles were given")

    G = graph.to_networkx()
    spanning = nx.minimum_spanning_tree(G, weight='weight', algorithm='kruskal')

    trees = []
    components = sorted((sorted(c) for c in nx.connected_components(spanning)), key=lambda c: c[0])
    for component in components:
        root = select_root(component, particles)
        order = [root]
        parent = {}
        for u, v in nx.bfs_edges(spanning, root, sort_neighbors=sorted):
            parent[v] = u
            order.append(v)
        trees.append(ParticleTree(root=root, order=order, parent=parent))

    singletons = sum(1 for tree in trees if len(tree) == 1)
    logger.info(f"Oriented forest has {len(trees)} trees ({singletons} singletons)")
    return OrientedForest(graph.n_particles, trees)

import logging
from collections import Counter
from typing import Dict, Optional
import numpy as np

from .chest_conventions import ChestType, GENERATION_TYPES, NUM_GENERATIONS, is_generation, generation_index

logger = logging.getLogger(__name__)

EVALUATED_TYPES = GENERATION_TYPES + (ChestType.UNDEFINEDTYPE,)

def dice_score(intersection: int, in_count: int, out_count: int) -> Optional[float]:
    """Dice overlap 2|A∩B| / (|A| + |B|), None when both sets are empty"""
    denom = in_count + out_count
    if denom <= 0:
        return None
    return 2.0 * intersection / denom

def compute_dice_scores(reference: np.ndarray, predicted: np.ndarray) -> Dict[ChestType, float]:
    """Per-label Dice scores of predicted against reference labels

    Only labels present in either labeling are reported.
    """
    reference = np.asarray(reference).astype(np.int64)
    predicted = np.asarray(predicted).astype(np.int64)
    if reference.shape != predicted.shape:
        raise ValueError(f"Label arrays differ in shape: {reference.shape} vs {predicted.shape}")

    in_counts = Counter(reference.tolist())
    out_counts = Counter(predicted.tolist())
    intersections = Counter(reference[reference == predicted].tolist())

    scores = {}
    for chest_type in EVALUATED_TYPES:
        score = dice_score(intersections[int(chest_type)], in_counts[int(chest_type)], out_counts[int(chest_type)])
        if score is not None:
            scores[chest_type] = score
    return scores

def confusion_matrix(reference: np.ndarray, predicted: np.ndarray) -> np.ndarray:
    """11x11 confusion counts, rows = reference generation, columns = predicted

    Particles whose reference or predicted label is not a generation are left out.
    """
    matrix = np.zeros((NUM_GENERATIONS, NUM_GENERATIONS), dtype=np.int64)
    for ref, pred in zip(np.asarray(reference).tolist(), np.asarray(predicted).tolist()):
        if is_generation(ref) and is_generation(pred):
            matrix[generation_index(ref), generation_index(pred)] += 1
    return matrix

def format_confusion_matrix(matrix: np.ndarray) -> str:
    lines = ["----------------- Confusion Matrix -----------------------"]
    for row in matrix:
        lines.append("\t".join(str(int(v)) for v in row))
    return "\n".join(lines)

def log_evaluation(reference: np.ndarray, predicted: np.ndarray) -> Dict[ChestType, float]:
    """Log Dice scores and the confusion matrix of a labeling"""
    scores = compute_dice_scores(reference, predicted)
    for chest_type, score in scores.items():
        logger.info(f"Dice for {chest_type.name}:\t{score:.4f}")
    logger.info("\n" + format_confusion_matrix(confusion_matrix(reference, predicted)))
    return scores

"""Engine Exporter: persist a compiled plan for the Engine Loader."""
import logging
import os

from .errors import SerializationError

logger = logging.getLogger(__name__)


def serialize_engine(engine):
    serialized = engine.serialize()
    if serialized is None:
        raise SerializationError('Engine serialization failed')
    return serialized


def export_engine(engine, engine_path):
    """
    Write the serialized engine to ``engine_path``

    The plan is written to a temporary sibling and renamed into place, so a
    failed export never leaves a truncated plan behind.

    Returns:
        bool: Whether the file was written
    """
    try:
        serialized = serialize_engine(engine)
    except SerializationError as e:
        logger.error('%s', e)
        return False

    tmp_path = engine_path + '.tmp'
    try:
        os.makedirs(os.path.dirname(engine_path) or '.', exist_ok=True)
        with open(tmp_path, 'wb') as f:
            f.write(serialized)
        os.replace(tmp_path, engine_path)
    except OSError as e:
        logger.error('Cannot write engine file %s: %s', engine_path, e)
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        return False
    logger.info('Saved: %s', engine_path)
    return True

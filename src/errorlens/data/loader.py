"""
Loading error records from JSONL and writing grouping results.
"""
import json
from datetime import datetime
from pathlib import Path
from typing import Any, List

from pydantic import ValidationError

from errorlens.core.models import ErrorRecord, ErrorGroup
from errorlens.core.exceptions import DataLoadError
from errorlens.utils.logger import logger


def load_records_jsonl(file_path: Path) -> List[ErrorRecord]:
    """
    Load error records from a JSONL file, one record per line.

    Blank lines are skipped.

    Raises:
        DataLoadError: If the file is missing or a line is not a valid record
    """
    file_path = Path(file_path)
    if not file_path.exists():
        raise DataLoadError(f"Records file not found: {file_path}")

    records = []
    with open(file_path, 'r', encoding='utf-8') as f:
        for line_number, line in enumerate(f, start=1):
            if not line.strip():
                continue
            try:
                records.append(ErrorRecord.model_validate(json.loads(line)))
            except (json.JSONDecodeError, ValidationError) as e:
                raise DataLoadError(f"Invalid record on line {line_number} of {file_path}: {e}")

    logger.info(
        "Loaded error records",
        file=str(file_path),
        num_records=len(records),
        with_embeddings=sum(1 for r in records if r.has_embedding),
    )
    return records


def save_groups_json(groups: List[ErrorGroup], output: Path, **metadata: Any) -> Path:
    """
    Write groups to a JSON file. Member embeddings are left out to keep the
    output readable.
    """
    output = Path(output)
    output.parent.mkdir(parents=True, exist_ok=True)

    output_data = {
        **metadata,
        'total_groups': len(groups),
        'groups': [
            {
                **g.model_dump(mode='json', exclude={'errors'}),
                'display_id': g.display_id,
                'errors': [e.model_dump(mode='json', exclude={'embedding'}) for e in g.errors],
            }
            for g in groups
        ],
        'created_at': datetime.now().isoformat(),
    }

    with open(output, 'w', encoding='utf-8') as f:
        json.dump(output_data, f, indent=2, default=str)

    logger.info("Saved error groups", output=str(output), num_groups=len(groups))
    return output

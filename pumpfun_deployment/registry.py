import json
from collections import OrderedDict
from datetime import datetime, timezone
from pathlib import Path
from typing import NamedTuple, Optional

from eth_typing import ChecksumAddress

from pumpfun_deployment.constants import ARTIFACTS_DIR, RECORD_FILENAME_TEMPLATE
from pumpfun_deployment.exceptions import PersistenceFailure

STANDARD_RECORD_JSON_FORMAT = {"indent": 2, "separators": (",", ": ")}

# serialized key -> DeploymentRecord field, in file order
RECORD_KEYS = OrderedDict(
    [
        ("network", "network"),
        ("factoryAddress", "factory_address"),
        ("mainContractAddress", "main_contract_address"),
        ("feeRecipient", "fee_recipient"),
        ("deployerAddress", "deployer_address"),
        ("timestamp", "timestamp"),
    ]
)


def utc_timestamp(now: Optional[datetime] = None) -> str:
    """ISO-8601 UTC timestamp with millisecond precision, e.g. 2024-05-01T12:00:00.000Z"""
    now = now or datetime.now(timezone.utc)
    now = now.astimezone(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


class DeploymentRecord(NamedTuple):
    """Represents the persisted summary of a single deployment run."""

    network: str
    factory_address: ChecksumAddress
    main_contract_address: ChecksumAddress
    fee_recipient: ChecksumAddress
    deployer_address: ChecksumAddress
    timestamp: str

    def to_json_dict(self) -> OrderedDict:
        data = OrderedDict()
        for key, field in RECORD_KEYS.items():
            data[key] = getattr(self, field)
        return data

    @classmethod
    def from_json_dict(cls, data: dict) -> "DeploymentRecord":
        missing = [key for key in RECORD_KEYS if key not in data]
        if missing:
            raise ValueError(f"Deployment record is missing field(s): {', '.join(missing)}")
        return cls(**{field: data[key] for key, field in RECORD_KEYS.items()})


def record_filepath(network: str, artifacts_dir: Optional[Path] = None) -> Path:
    """Returns the artifact filepath of the deployment record for a network."""
    artifacts_dir = Path(artifacts_dir or ARTIFACTS_DIR)
    return artifacts_dir / RECORD_FILENAME_TEMPLATE.format(network=network)


def write_record(record: DeploymentRecord, filepath: Path) -> Path:
    """
    Writes a deployment record, replacing whatever was stored for the network before.
    Raises PersistenceFailure on any I/O error.
    """
    if filepath.exists():
        print(f"Replacing existing deployment record at {filepath}.")
    else:
        print(f"Creating new deployment record at {filepath}.")

    temp_filepath = filepath.with_suffix(".temp.json")
    try:
        # Create the parent directory if it does not exist
        filepath.parent.mkdir(parents=True, exist_ok=True)
        with open(temp_filepath, "w") as file:
            json.dump(record.to_json_dict(), file, **STANDARD_RECORD_JSON_FORMAT)
            file.write("\n")
        # the previous record survives until the new one is complete
        temp_filepath.replace(filepath)
    except OSError as e:
        if temp_filepath.exists():
            temp_filepath.unlink()
        raise PersistenceFailure(
            f"Could not write deployment record to {filepath}: {e}",
            filepath=filepath,
            record=record,
        ) from e

    return filepath


def read_record(filepath: Path) -> DeploymentRecord:
    with open(filepath, "r") as file:
        data = json.load(file)
    return DeploymentRecord.from_json_dict(data)

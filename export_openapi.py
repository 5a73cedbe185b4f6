import json
import sys
from pathlib import Path

from ipedge.main import app  # FastAPI app

DEFAULT_OUT_PATH = Path("openapi") / "openapi.generated.json"


def main(out_path: Path = DEFAULT_OUT_PATH) -> Path:
    schema = app.openapi()  # dict
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(json.dumps(schema, indent=2))
    print(f"Wrote {out_path}")  # noqa: T201
    return out_path


if __name__ == "__main__":
    main(Path(sys.argv[1]) if len(sys.argv) > 1 else DEFAULT_OUT_PATH)

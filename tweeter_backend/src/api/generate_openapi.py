import json
import os

from src.api.config import Settings
from src.api.main import create_app

"""
Script to generate and write the OpenAPI schema to interfaces/openapi.json
Run: python -m src.api.generate_openapi
"""

# The schema does not depend on the database or secret in use.
app = create_app(Settings(sqlite_db=":memory:", secret_or_key="openapi-schema-generation-not-used-for-signing"))
openapi_schema = app.openapi()

output_dir = "interfaces"
os.makedirs(output_dir, exist_ok=True)
output_path = os.path.join(output_dir, "openapi.json")

with open(output_path, "w") as f:
    json.dump(openapi_schema, f, indent=2)
print(f"Wrote OpenAPI schema to {output_path}")

"""
Data Loader Script - Loads sample_students.json into the API.

Reads the sample data file and creates each student through
POST /api/students, so every record goes through the same validation and
student number allocation as any other client.

Usage:
    python load_data.py                              # Uses default URL
    python load_data.py http://localhost:3000         # Custom API URL
"""

import json
import os
import sys

import httpx

DEFAULT_API_URL = "http://localhost:3000"
DATA_FILE = "sample_students.json"


def load_students(client: httpx.Client, students: list) -> dict:
    """
    POST each student record and collect the outcome.

    `client` must be bound to the API's base URL (an httpx.Client with
    base_url, or FastAPI's TestClient).

    Returns a summary dict with `created`, `rejected` and per-record `details`.
    """
    created = 0
    rejected = 0
    details = []

    for record in students:
        response = client.post("/api/students", json=record)
        body = response.json()
        if response.status_code == 201:
            created += 1
            details.append({"email": record.get("email"), "status": "CREATED",
                            "studentNo": body.get("studentNo")})
        else:
            rejected += 1
            if "errors" in body:
                reason = "; ".join(e["message"] for e in body["errors"])
            else:
                reason = body.get("message", "HTTP {}".format(response.status_code))
            details.append({"email": record.get("email"), "status": "REJECTED",
                            "reason": reason})

    return {"total": len(students), "created": created, "rejected": rejected,
            "details": details}


def find_data_file() -> str:
    data_file = os.path.join(os.path.dirname(os.path.abspath(__file__)), DATA_FILE)
    if not os.path.exists(data_file):
        # Try current directory
        data_file = DATA_FILE
    return data_file


def main():
    api_url = sys.argv[1] if len(sys.argv) > 1 else os.getenv("API_URL", DEFAULT_API_URL)

    data_file = find_data_file()
    if not os.path.exists(data_file):
        print(f"Error: Could not find {DATA_FILE}")
        sys.exit(1)

    print(f"Loading data from: {data_file}")
    with open(data_file, 'r') as f:
        students = json.load(f)

    print(f"Found {len(students)} students to create")
    print(f"Sending to: {api_url}/api/students")
    print()

    try:
        with httpx.Client(base_url=api_url, timeout=30.0) as client:
            result = load_students(client, students)
    except httpx.HTTPError as e:
        print(f"HTTP Error: {e}")
        sys.exit(1)

    print("=" * 60)
    print("LOAD SUMMARY")
    print("=" * 60)
    print(f"  Total:    {result['total']}")
    print(f"  Created:  {result['created']}")
    print(f"  Rejected: {result['rejected']}")
    print("=" * 60)
    print()

    for d in result["details"]:
        if d["status"] == "CREATED":
            print(f"  + {d['email']}: {d['studentNo']}")
        else:
            print(f"  x {d['email']}: {d['reason']}")


if __name__ == "__main__":
    main()

from memory_profiler import profile
from app.main import app
from fastapi.testclient import TestClient

# Create a test client for the FastAPI app
client = TestClient(app)


@profile
def run_scenario():
    """
    Exercise the public read endpoints while tracking memory.

    Nothing is asserted here; run it with ``python profile_memory.py`` and
    read the line-by-line report.
    """
    client.get("/health")
    client.get("/api/classrooms/")
    client.get("/api/reservations/")
    client.get("/api/reservations/", params={"classroom_id": 1})


if __name__ == "__main__":
    with client:
        run_scenario()

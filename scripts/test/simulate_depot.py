# scripts/test/simulate_depot.py
"""Drive a running backend through a depot visit: allocation, jobs, ticks and a service pipeline."""

import argparse
import time
import requests

BACKEND_URL = "http://127.0.0.1:8080/api/v1"


def _post(path, api_key=None, **kwargs):
    headers = {"X-API-Key": api_key} if api_key else {}
    resp = requests.post(f"{BACKEND_URL}{path}", headers=headers, timeout=10, **kwargs)
    print(f"POST {path} → HTTP {resp.status_code}")
    return resp


def _get(path, api_key=None, **kwargs):
    headers = {"X-API-Key": api_key} if api_key else {}
    resp = requests.get(f"{BACKEND_URL}{path}", headers=headers, timeout=10, **kwargs)
    print(f"GET  {path} → HTTP {resp.status_code}")
    return resp


def simulate_allocation(depot_id, vehicle_id, stall_type, urgency, api_key):
    resp = _post(f"/depots/{depot_id}/allocate", api_key,
                 json={"vehicle_id": vehicle_id, "stall_type": stall_type, "urgency": urgency})
    print(f"✅ allocation: {resp.json()}")


def simulate_job(vehicle_id, job_type, ticks, api_key):
    resp = _post("/jobs", api_key, json={"vehicle_id": vehicle_id, "job_type": job_type})
    body = resp.json()
    print(f"✅ job: {body}")
    job_id = body["job"]["id"]
    for _ in range(ticks):
        _post("/scheduler/tick", api_key, json={"process_transitions": True})
        print(f"   state={_get(f'/jobs/{job_id}', api_key).json()['state']}")
        time.sleep(1)


def simulate_pipeline(depot_id, vehicle_id, steps, api_key):
    resp = _post("/pipelines/arrival", api_key, json={"vehicle_id": vehicle_id, "depot_id": depot_id})
    pipeline = resp.json()
    print(f"✅ pipeline: {[s['service_type'] for s in pipeline['steps']]} state={pipeline['state']}")
    for _ in range(steps):
        _post("/pipelines/simulate", api_key)
    print(f"   counts: {_get('/pipelines/counts', api_key).json()}")
    for event in _get("/pipelines/events", api_key, params={"limit": 10}).json():
        print(f"   {event['timestamp']} {event['from_state']} → {event['to_state']}: {event['label']}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Simulate depot traffic against a running backend")
    parser.add_argument("--scenario", default="pipeline", choices=["allocate", "job", "pipeline"])
    parser.add_argument("--depot", required=True)
    parser.add_argument("--vehicle", required=True)
    parser.add_argument("--stall-type", default="charge_fast")
    parser.add_argument("--urgency", type=int, default=80)
    parser.add_argument("--job-type", default="CHARGE")
    parser.add_argument("--steps", type=int, default=10)
    parser.add_argument("--api-key", default=None)
    parser.add_argument("--url", default=BACKEND_URL)
    args = parser.parse_args()
    BACKEND_URL = args.url

    if args.scenario == "allocate":
        simulate_allocation(args.depot, args.vehicle, args.stall_type, args.urgency, args.api_key)
    elif args.scenario == "job":
        simulate_job(args.vehicle, args.job_type, args.steps, args.api_key)
    else:
        simulate_pipeline(args.depot, args.vehicle, args.steps, args.api_key)

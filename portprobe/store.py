# portprobe/store.py
import asyncio

store = {}

# finished scans kept around for result lookups; oldest go first
MAX_FINISHED_SCANS = 256


def _evict_finished():
    finished = [sid for sid, entry in store.items() if entry["status"] != "in_progress"]
    for scan_id in finished[: max(0, len(finished) - MAX_FINISHED_SCANS)]:
        del store[scan_id]


def new_scan(scan_id):
    _evict_finished()
    store[scan_id] = {
        "status": "in_progress",
        "report": None,
        "error": None,
        "cancel": asyncio.Event(),
    }
    return store[scan_id]


def get_status(scan_id):
    if scan_id not in store:
        return {"scan_id": scan_id, "status": "not_found"}
    return {"scan_id": scan_id, "status": store[scan_id]["status"]}


def get_results(scan_id):
    if scan_id not in store:
        return {"scan_id": scan_id, "status": "not_found", "report": None}
    entry = store[scan_id]
    return {
        "scan_id": scan_id,
        "status": entry["status"],
        "report": entry["report"],
        "error": entry["error"],
    }


def request_cancel(scan_id):
    if scan_id not in store:
        return {"scan_id": scan_id, "status": "not_found"}
    entry = store[scan_id]
    if entry["status"] == "in_progress":
        entry["cancel"].set()
    return {"scan_id": scan_id, "status": entry["status"]}

import os
from concurrent.futures import ThreadPoolExecutor

from ffmpeg_jobs.jobs.models import JobRecord, JobStatus

from conftest import make_job


def test_put_get_list(store, staging):
    first = make_job(staging, ["-i", "a"])
    second = make_job(staging, ["-i", "b"])
    store.put(first)
    store.put(second)

    assert store.get(first.id) is first
    assert store.get("missing") is None
    assert [s["id"] for s in store.list()] == [first.id, second.id]
    assert all(s["status"] == "queued" for s in store.list())


def test_delete_missing_job_changes_nothing(store, staging):
    job = make_job(staging, [])
    store.put(job)

    assert store.delete("missing") is None
    assert len(store) == 1


def test_delete_releases_inputs_and_output(store, staging):
    job = make_job(staging, ["-i", "{{video}}"], inputs={"video": b"data", "audio": b"more"})
    with open(job.output_path, "w") as fh:
        fh.write("out")
    store.put(job)

    removed, deleted = store.delete(job.id)

    assert removed is job
    assert deleted.input_files == 2
    assert deleted.output_file == 1
    assert store.get(job.id) is None
    assert not any(os.path.exists(p) for p in job.input_files)
    assert not os.path.exists(job.output_path)
    assert not os.path.exists(job.output_dir)


def test_delete_tolerates_files_already_gone(store, staging):
    job = make_job(staging, [], inputs={"video": b"data"})
    os.remove(job.input_files[0])
    store.put(job)

    _, deleted = store.delete(job.id)

    assert deleted.input_files == 1
    assert not os.path.exists(job.output_dir)


def test_update_does_not_resurrect_deleted_job(store, staging):
    job = make_job(staging, [])
    store.put(job)
    store.delete(job.id)

    job.status = JobStatus.PROCESSING
    assert store.update(job) is False
    assert store.get(job.id) is None


def test_concurrent_puts_from_threads(store):
    jobs = [JobRecord() for _ in range(200)]
    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(store.put, jobs))

    assert len(store) == 200
    assert {j.id for j in store.records()} == {j.id for j in jobs}

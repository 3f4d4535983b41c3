"""MongoDB-backed store for jobs, sources and collections.

The scheduler only needs the job-lifecycle methods at the top of
:class:`JobStore`; the CRUD methods below them serve the management API.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Any

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ASCENDING, DESCENDING, MongoClient, ReturnDocument
from pymongo.database import Database
from pymongo.errors import PyMongoError

from corpus_ingest.config import Settings
from corpus_ingest.errors import NotFoundError
from corpus_ingest.models import Collection, Job, JobState, Source, parse_source

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _object_id(value: str) -> ObjectId:
    try:
        return ObjectId(value)
    except (InvalidId, TypeError) as exc:
        raise NotFoundError(f"Invalid id {value!r}") from exc


def _from_mongo(doc: dict[str, Any]) -> dict[str, Any]:
    doc = dict(doc)
    if isinstance(doc.get("_id"), ObjectId):
        doc["_id"] = str(doc["_id"])
    return doc


def connect_mongo(settings: Settings) -> MongoClient:
    """Connect to MongoDB, retrying until ``settings.connect_timeout`` elapses.

    Raises
    ------
    ConnectionError
        When the server cannot be reached in time.
    """
    deadline = time.monotonic() + settings.connect_timeout
    last_exc: Exception | None = None
    while True:
        client: MongoClient = MongoClient(settings.mongo_uri, serverSelectionTimeoutMS=2000)
        try:
            client.admin.command("ping")
            logger.info("Connected to MongoDB at %s:%d", settings.mongo_host, settings.mongo_port)
            return client
        except PyMongoError as exc:
            client.close()
            last_exc = exc
            if time.monotonic() >= deadline:
                break
            time.sleep(0.5)
    raise ConnectionError(f"Could not connect to MongoDB at {settings.mongo_host}:{settings.mongo_port}") from last_exc


class JobStore:
    """Jobs, sources and collections persisted in one MongoDB database.

    Parameters
    ----------
    database:
        A ``pymongo`` database handle.
    """

    def __init__(self, database: Database) -> None:
        self._db = database
        self.jobs = database["jobs"]
        self.sources = database["sources"]
        self.collections = database["collections"]

    # -- job lifecycle --------------------------------------------------------

    def claim_next_waiting_job(self) -> Job | None:
        """Atomically mark the oldest waiting job as running and return it."""
        doc = self.jobs.find_one_and_update(
            {"state": JobState.WAITING.value},
            {"$set": {"state": JobState.RUNNING.value, "startedAt": _utcnow()}},
            sort=[("createdAt", ASCENDING)],
            return_document=ReturnDocument.AFTER,
        )
        return Job.model_validate(_from_mongo(doc)) if doc else None

    def update_job_log(self, job_id: str, log: str) -> None:
        self.jobs.update_one({"_id": _object_id(job_id)}, {"$set": {"log": log}})

    def get_job_state(self, job_id: str) -> JobState:
        """Return the persisted state; a deleted job reads as stopped."""
        doc = self.jobs.find_one({"_id": _object_id(job_id)}, projection={"state": 1})
        if not doc:
            return JobState.STOPPED
        return JobState(doc["state"])

    def finish_job(self, job_id: str, state: JobState) -> bool:
        """Move a running job to its terminal *state*.

        The update only applies while the job is still ``running``, so a
        stop issued by a user in the meantime is kept.  Returns whether the
        state was written.
        """
        result = self.jobs.update_one(
            {"_id": _object_id(job_id), "state": JobState.RUNNING.value},
            {"$set": {"state": state.value, "finishedAt": _utcnow()}},
        )
        return result.modified_count > 0

    def recover_running_jobs(self) -> int:
        """Mark jobs orphaned by a crashed worker as stopped."""
        result = self.jobs.update_many(
            {"state": JobState.RUNNING.value},
            {"$set": {"state": JobState.STOPPED.value, "finishedAt": _utcnow()}},
        )
        return result.modified_count

    # -- sources --------------------------------------------------------------

    def get_source(self, source_id: str) -> Source:
        doc = self.sources.find_one({"_id": _object_id(source_id)})
        if not doc:
            raise NotFoundError(f"Source with id {source_id} does not exist")
        return parse_source(_from_mongo(doc))

    def list_sources(self, collection_id: str) -> list[Source]:
        return [parse_source(_from_mongo(doc)) for doc in self.sources.find({"collectionId": collection_id})]

    def save_source(self, source: Source) -> Source:
        data = source.to_mongo()
        data.pop("_id", None)
        if source.id is None:
            source.id = str(self.sources.insert_one(data).inserted_id)
        else:
            self.sources.update_one({"_id": _object_id(source.id)}, {"$set": data})
        return source

    def delete_source(self, source_id: str) -> None:
        if not self.sources.delete_one({"_id": _object_id(source_id)}).deleted_count:
            raise NotFoundError(f"Source with id {source_id} does not exist")

    # -- jobs -----------------------------------------------------------------

    def create_job(self, source_id: str) -> Job:
        """Queue a new waiting job for *source_id*."""
        job = Job(source_id=source_id)
        data = job.to_mongo()
        job.id = str(self.jobs.insert_one(data).inserted_id)
        return job

    def get_job(self, job_id: str) -> Job:
        doc = self.jobs.find_one({"_id": _object_id(job_id)})
        if not doc:
            raise NotFoundError(f"Job with id {job_id} does not exist")
        return Job.model_validate(_from_mongo(doc))

    def get_job_by_source(self, source_id: str) -> Job | None:
        """Return the most recent job of *source_id*, if any."""
        doc = self.jobs.find_one({"sourceId": source_id}, sort=[("createdAt", DESCENDING)])
        return Job.model_validate(_from_mongo(doc)) if doc else None

    def stop_job(self, job_id: str) -> bool:
        """Request cancellation of a waiting or running job."""
        result = self.jobs.update_one(
            {
                "_id": _object_id(job_id),
                "state": {"$in": [JobState.WAITING.value, JobState.RUNNING.value]},
            },
            {"$set": {"state": JobState.STOPPED.value, "finishedAt": _utcnow()}},
        )
        return result.modified_count > 0

    def delete_job(self, job_id: str) -> None:
        if not self.jobs.delete_one({"_id": _object_id(job_id)}).deleted_count:
            raise NotFoundError(f"Job with id {job_id} does not exist")

    # -- collections ----------------------------------------------------------

    def list_collections(self) -> list[Collection]:
        return [Collection.model_validate(_from_mongo(doc)) for doc in self.collections.find({})]

    def get_collection(self, collection_id: str) -> Collection:
        doc = self.collections.find_one({"_id": _object_id(collection_id)})
        if not doc:
            raise NotFoundError(f"Collection with id {collection_id} does not exist")
        return Collection.model_validate(_from_mongo(doc))

    def save_collection(self, collection: Collection) -> Collection:
        data = collection.to_mongo()
        data.pop("_id", None)
        if collection.id is None:
            collection.id = str(self.collections.insert_one(data).inserted_id)
        else:
            self.collections.update_one({"_id": _object_id(collection.id)}, {"$set": data})
        return collection

    def delete_collection(self, collection_id: str) -> None:
        if not self.collections.delete_one({"_id": _object_id(collection_id)}).deleted_count:
            raise NotFoundError(f"Collection with id {collection_id} does not exist")

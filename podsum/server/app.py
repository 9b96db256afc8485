"""
Flask API server for podcast processing.

This server provides endpoints for:
- Submitting an uploaded file or a remote URL for summarization
- Checking and cancelling processing jobs
- Retrieving and exporting finished summaries

Jobs are processed by a single background worker. The caller's identity is
read from the ``X-User-Id`` header; verifying it is left to the gateway in
front of this service.
"""

import atexit
import json
import logging
import os
import uuid
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

from flask import Flask, Response, current_app, jsonify, request
from flask_cors import CORS
from werkzeug.utils import secure_filename

from ..audio.acquisition import AudioAcquirer, HttpAudioFetcher
from ..audio.models import ProcessingOptions, SourceKind
from ..audio.summarizer import PodcastSummarizer
from ..audio.transcription import OpenAITranscriber, Transcriber, WhisperTranscriber
from ..config import ConfigManager, configure_logging
from ..errors import JobAccessError
from .assembler import ResultAssembler
from .exporters import EXPORT_FORMATS, export_filename, render
from .job_manager import JobManager, JobStatus, SubmissionRequest
from .processing_queue import ProcessingQueue
from .processor import build_processor
from .status import estimate_processing_time, status_message
from .storage import InMemorySummaryStore, JsonFileSummaryStore, SummaryStore

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {"wav", "mp3", "mp4", "m4a", "flac", "aac", "ogg", "webm", "mov"}
OWNER_HEADER = "X-User-Id"


@dataclass
class Services:
    """Long-lived collaborators shared by the request handlers."""

    config: ConfigManager
    job_manager: JobManager
    processing_queue: ProcessingQueue
    store: SummaryStore
    upload_dir: Path


def build_transcriber(config: ConfigManager) -> Transcriber:
    backend = str(config.get("TRANSCRIPTION_BACKEND")).lower()
    if backend == "whisper":
        return WhisperTranscriber(model_name=config.get("WHISPER_MODEL"))
    if backend != "openai":
        raise ValueError(f"Unknown TRANSCRIPTION_BACKEND: {backend}")
    return OpenAITranscriber(api_key=config.get("OPENAI_API_KEY"), model=config.get("TRANSCRIPTION_MODEL"))


def build_services(
    config: ConfigManager,
    transcriber: Optional[Transcriber] = None,
    summarizer: Optional[PodcastSummarizer] = None,
    store: Optional[SummaryStore] = None,
) -> Services:
    """Construct the pipeline once; stage clients can be injected."""
    upload_dir = Path(config.get("UPLOAD_DIR"))
    upload_dir.mkdir(parents=True, exist_ok=True)

    job_manager = JobManager()
    if store is None:
        summary_dir = config.get("SUMMARY_DIR")
        store = JsonFileSummaryStore(summary_dir) if summary_dir else InMemorySummaryStore()

    transcriber = transcriber or build_transcriber(config)
    summarizer = summarizer or PodcastSummarizer(
        api_key=config.get("OPENAI_API_KEY"),
        model=config.get("LLM_MODEL"),
        max_tokens=config.get_int("OPENAI_MAX_TOKENS"),
        temperature=config.get_float("OPENAI_TEMPERATURE"),
    )

    fetcher = None
    if config.get_bool("ENABLE_URL_DOWNLOAD"):
        fetcher = HttpAudioFetcher(max_bytes=config.get_int("MAX_DOWNLOAD_MB") * 1024 * 1024)

    processor = build_processor(
        job_manager=job_manager,
        transcriber=transcriber,
        summarizer=summarizer,
        assembler=ResultAssembler(store),
        work_dir=config.get("WORK_DIR"),
        ffmpeg_path=config.get("FFMPEG_PATH"),
        normalize_loudness=config.get_bool("NORMALIZE_LOUDNESS"),
        acquirer=AudioAcquirer(str(upload_dir), fetcher=fetcher),
    )

    return Services(
        config=config,
        job_manager=job_manager,
        processing_queue=ProcessingQueue(
            job_manager,
            processor,
            job_retention=config.get_float("JOB_RETENTION_HOURS") * 60 * 60,
            cleanup_interval=config.get_float("CLEANUP_INTERVAL_MINUTES") * 60,
        ),
        store=store,
        upload_dir=upload_dir,
    )


def error_response(status_code: int, error: str, message: str):
    return jsonify(
        {"error": error, "message": message, "statusCode": status_code, "timestamp": datetime.now().isoformat()}
    ), status_code


def allowed_file(filename: str) -> bool:
    """Check if the uploaded file has an allowed extension."""
    return "." in filename and filename.rsplit(".", 1)[1].lower() in ALLOWED_EXTENSIONS


def _services() -> Services:
    return current_app.extensions["podsum"]


def _owner_id() -> Optional[str]:
    owner = request.headers.get(OWNER_HEADER, "").strip()
    return owner or None


def _submission_payload() -> Dict[str, Any]:
    """Merge form fields and a JSON body into one dict; ``options`` may be a JSON string."""
    payload: Dict[str, Any] = dict(request.form.items())
    body = request.get_json(silent=True)
    if isinstance(body, dict):
        payload.update(body)

    options = payload.get("options")
    if isinstance(options, str):
        try:
            options = json.loads(options) if options.strip() else {}
        except json.JSONDecodeError:
            raise ValueError("options must be a JSON object")
    if options is not None and not isinstance(options, dict):
        raise ValueError("options must be a JSON object")
    payload["options"] = options or {}
    return payload


def _parse_options(raw: Dict[str, Any]) -> ProcessingOptions:
    lang = raw.get("lang")
    if lang not in (None, "") and (not isinstance(lang, str) or not 2 <= len(lang) <= 5):
        raise ValueError("options.lang must be a 2-5 character language code")
    if "timestamps" in raw and not isinstance(raw["timestamps"], (bool, str)):
        raise ValueError("options.timestamps must be a boolean")
    try:
        return ProcessingOptions.from_dict(raw)
    except ValueError:
        raise ValueError("options.detail must be one of brief, standard, deep")


def _store_upload(upload_dir: Path) -> Dict[str, Any]:
    """Validate and persist the uploaded file; returns its stored path and original name."""
    if "file" not in request.files:
        raise ValueError("File is required when type is file")

    file = request.files["file"]
    if file.filename == "":
        raise ValueError("No file selected")

    original_filename = secure_filename(file.filename)
    if not original_filename or not allowed_file(original_filename):
        allowed_types = ", ".join(sorted(ALLOWED_EXTENSIONS))
        raise ValueError(f"File type not allowed. Allowed types: {allowed_types}")

    extension = original_filename.rsplit(".", 1)[1].lower()
    stored_path = upload_dir / f"{uuid.uuid4().hex}.{extension}"
    file.save(str(stored_path))

    if os.path.getsize(stored_path) == 0:
        os.unlink(stored_path)
        raise ValueError("Empty file not allowed")

    return {"file_path": str(stored_path), "original_filename": original_filename}


def register_routes(app: Flask) -> None:
    @app.route("/health", methods=["GET"])
    def health_check():
        """Health check endpoint."""
        queue_status = _services().processing_queue.get_queue_status()
        return jsonify(
            {
                "status": "healthy",
                "timestamp": datetime.now().isoformat(),
                "queue_running": queue_status["is_running"],
                "queue_size": queue_status["queue_length"],
                "processing_jobs": len(queue_status["processing_jobs"]),
            }
        )

    @app.route("/api/upload", methods=["POST"])
    def upload_audio():
        """
        Submit an audio file or a remote URL for processing.

        Expected form data or JSON body:
        - type: "file" or "url"
        - file: Audio file (multipart, for type=file)
        - url: Remote audio URL (for type=url)
        - options: {lang, detail, timestamps}, as an object or a JSON string

        Returns 202 with jobId, status, message and estimatedTime.
        """
        owner_id = _owner_id()
        if owner_id is None:
            return error_response(401, "Unauthorized", f"Missing {OWNER_HEADER} header")

        services = _services()
        try:
            payload = _submission_payload()
        except ValueError as e:
            return error_response(400, "Validation Error", str(e))

        try:
            source_type = SourceKind(payload.get("type") or "")
        except ValueError:
            return error_response(400, "Validation Error", "type must be one of file, url")

        try:
            options = _parse_options(payload["options"])
            if source_type == SourceKind.URL:
                url = (payload.get("url") or "").strip()
                if not url.startswith(("http://", "https://")):
                    raise ValueError("A valid http(s) URL is required when type is url")
                submission = SubmissionRequest(type=source_type, url=url, options=options)
            else:
                stored = _store_upload(services.upload_dir)
                submission = SubmissionRequest(type=source_type, options=options, **stored)
        except ValueError as e:
            return error_response(400, "Validation Error", str(e))

        job = services.job_manager.create_job(owner_id, submission)

        return jsonify(
            {
                "jobId": job.id,
                "status": job.status.value,
                "message": "Upload received and processing started",
                "estimatedTime": estimate_processing_time(submission.type, submission.options),
            }
        ), 202

    @app.route("/api/upload/status/<job_id>", methods=["GET"])
    def get_job_status(job_id: str):
        """Get the status, progress and error (if failed) of a processing job."""
        owner_id = _owner_id()
        if owner_id is None:
            return error_response(401, "Unauthorized", f"Missing {OWNER_HEADER} header")

        try:
            job = _services().job_manager.get_job(job_id, owner_id=owner_id)
        except JobAccessError:
            return error_response(403, "Forbidden", "You do not have permission to access this job")
        if job is None:
            return error_response(404, "Not Found", "Processing job not found")

        response = {
            "jobId": job.id,
            "status": job.status.value,
            "progress": job.progress,
            "message": status_message(job),
        }
        if job.status == JobStatus.FAILED:
            response["error"] = job.error
        if job.status == JobStatus.COMPLETED:
            response["summaryId"] = job.summary_id
        return jsonify(response)

    @app.route("/api/upload/cancel/<job_id>", methods=["DELETE"])
    def cancel_job(job_id: str):
        """Cancel a queued or processing job."""
        owner_id = _owner_id()
        if owner_id is None:
            return error_response(401, "Unauthorized", f"Missing {OWNER_HEADER} header")

        job_manager = _services().job_manager
        try:
            job = job_manager.get_job(job_id, owner_id=owner_id)
        except JobAccessError:
            return error_response(403, "Forbidden", "You do not have permission to cancel this job")
        if job is None:
            return error_response(404, "Not Found", "Processing job not found")

        if not job_manager.cancel_job(job_id):
            return error_response(400, "Bad Request", "Job cannot be cancelled (already completed or failed)")

        return jsonify({"message": "Job cancelled successfully", "jobId": job_id})

    @app.route("/api/upload/queue", methods=["GET"])
    def get_queue_status():
        """Get detailed queue status information."""
        return jsonify(_services().processing_queue.get_queue_status())

    @app.route("/api/summaries", methods=["GET"])
    def list_summaries():
        owner_id = _owner_id()
        if owner_id is None:
            return error_response(401, "Unauthorized", f"Missing {OWNER_HEADER} header")

        summaries = _services().store.list_for_owner(owner_id)
        return jsonify({"summaries": [s.to_dict() for s in summaries], "total": len(summaries)})

    @app.route("/api/summaries/<summary_id>", methods=["GET"])
    def get_summary(summary_id: str):
        owner_id = _owner_id()
        if owner_id is None:
            return error_response(401, "Unauthorized", f"Missing {OWNER_HEADER} header")

        summary = _services().store.get(summary_id)
        if summary is None:
            return error_response(404, "Not Found", "Summary not found")
        if summary.owner_id != owner_id:
            return error_response(403, "Forbidden", "You do not have permission to access this summary")
        return jsonify(summary.to_dict())

    @app.route("/api/summaries/<summary_id>", methods=["DELETE"])
    def delete_summary(summary_id: str):
        owner_id = _owner_id()
        if owner_id is None:
            return error_response(401, "Unauthorized", f"Missing {OWNER_HEADER} header")

        store = _services().store
        summary = store.get(summary_id)
        if summary is None:
            return error_response(404, "Not Found", "Summary not found")
        if summary.owner_id != owner_id:
            return error_response(403, "Forbidden", "You do not have permission to delete this summary")

        store.delete(summary_id)
        logger.info(f"Summary {summary_id} deleted by {owner_id}")
        return jsonify(
            {"success": True, "message": "Summary deleted successfully", "timestamp": datetime.now().isoformat()}
        )

    @app.route("/api/summaries/<summary_id>/export", methods=["GET"])
    def export_summary(summary_id: str):
        """Export a summary as json, markdown or text."""
        owner_id = _owner_id()
        if owner_id is None:
            return error_response(401, "Unauthorized", f"Missing {OWNER_HEADER} header")

        export_format = request.args.get("format", "json")
        if export_format not in EXPORT_FORMATS:
            return error_response(400, "Validation Error", "format must be one of json, markdown, text")

        summary = _services().store.get(summary_id)
        if summary is None:
            return error_response(404, "Not Found", "Summary not found")
        if summary.owner_id != owner_id:
            return error_response(403, "Forbidden", "You do not have permission to export this summary")

        content_type, _ = EXPORT_FORMATS[export_format]
        return Response(
            render(summary, export_format),
            mimetype=content_type,
            headers={"Content-Disposition": f'attachment; filename="{export_filename(summary, export_format)}"'},
        )


def create_app(
    config: Optional[ConfigManager] = None,
    transcriber: Optional[Transcriber] = None,
    summarizer: Optional[PodcastSummarizer] = None,
    store: Optional[SummaryStore] = None,
    start_worker: bool = True,
) -> Flask:
    """
    Build the Flask app and its pipeline.

    Args:
        config: Configuration; defaults to environment/.env
        transcriber: Speech-to-text client override
        summarizer: Summarization client override
        store: Summary storage override
        start_worker: Start the background worker thread
    """
    config = config or ConfigManager()

    app = Flask(__name__)
    app.config["MAX_CONTENT_LENGTH"] = config.get_int("MAX_FILE_SIZE_MB") * 1024 * 1024
    CORS(app)

    services = build_services(config, transcriber=transcriber, summarizer=summarizer, store=store)
    app.extensions["podsum"] = services
    register_routes(app)

    if start_worker:
        services.processing_queue.start()
        atexit.register(services.processing_queue.stop)

    return app


def main():
    config = ConfigManager()
    configure_logging(config)
    app = create_app(config)
    app.run(host="0.0.0.0", port=config.get_int("PORT"))


if __name__ == "__main__":
    main()

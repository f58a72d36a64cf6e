#!/usr/bin/env python3
"""
Deferred Media API Server
Stages cropped, watermarked and compressed media per editing session and
publishes documents once every staged asset is uploaded.
"""

import os
import logging
import uuid
from pathlib import Path
from typing import Dict, Optional
from io import BytesIO
from dotenv import load_dotenv

# Load environment variables first
load_dotenv()

from flask import Flask, request, jsonify, send_file, send_from_directory
from flask_cors import CORS
from werkzeug.utils import secure_filename

# --- Centralized Logging Configuration ---
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)-25s - %(levelname)-8s - %(message)s',
    datefmt='%H:%M:%S'
)

from models.crop_region import CropRegion
from models.errors import (InvalidCropRegion, MediaPipelineError, MediaTooLarge,
                           UnsupportedMediaType, UploadFailure)
from services.compression_service import CompressionService
from services.image_service import ImageService
from services.pending_media_service import PendingMediaService
from services.upload_service import UploadService
from repositories.upload_repository import build_upload_repository
from pipeline.process_crop import stage_selection
from pipeline.publish_document import publish_document

app = Flask(__name__)
CORS(app)  # Enable CORS for frontend communication

# Configuration
RESULTS_FOLDER = os.getenv("RESULTS_FOLDER", "data/uploads")
MAX_UPLOAD_SIZE_MB = int(os.getenv("MAX_UPLOAD_SIZE_MB", "10"))
# Leave room for the multipart envelope around a maximum size file.
app.config['MAX_CONTENT_LENGTH'] = (MAX_UPLOAD_SIZE_MB + 1) * 1024 * 1024

Path(RESULTS_FOLDER).mkdir(parents=True, exist_ok=True)

image_service = ImageService()
compression_service = CompressionService()
# One backend per process: the Cloudinary binding holds an httpx connection pool.
upload_repository = build_upload_repository()

logger = logging.getLogger(__name__)

# Session storage: one registry per editing session
sessions: Dict[str, "EditingSession"] = {}


class EditingSession:
    """State of one editor: the media it has staged but not yet published."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        self.registry = PendingMediaService()

    def clear(self):
        """Drop staged media and release every preview."""
        self.registry.clear()


def get_or_create_session(session_id: str = None) -> EditingSession:
    """Get existing session or create new one."""
    if not session_id:
        session_id = str(uuid.uuid4())

    if session_id not in sessions:
        sessions[session_id] = EditingSession(session_id)

    return sessions[session_id]


def get_upload_service() -> UploadService:
    """Upload coordinator bound to the shared upload backend."""
    return UploadService(upload_repository=upload_repository)


def _form_bool(value: Optional[str], default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _read_crop():
    if 'width' not in request.form or 'height' not in request.form:
        return None
    return CropRegion.from_mapping(request.form)


@app.route('/api/media', methods=['POST'])
def stage_media():
    """Process an uploaded selection and stage it for the session."""
    try:
        if 'file' not in request.files:
            return jsonify({'success': False, 'message': 'No file provided'}), 400

        file = request.files['file']
        if file.filename == '':
            return jsonify({'success': False, 'message': 'No file selected'}), 400

        session = get_or_create_session(request.form.get('session_id'))
        data = file.read()
        filename = secure_filename(file.filename)
        mime_type = file.mimetype or ''

        crop = _read_crop()
        rotation = float(request.form.get('rotation', 0))

        overrides = {
            'apply_watermark': _form_bool(request.form.get('apply_watermark'), True),
        }
        if request.form.get('watermark_text'):
            overrides['watermark_text'] = request.form['watermark_text']

        staged = stage_selection(
            session.registry, data, mime_type,
            file_name=filename, crop=crop, rotation_deg=rotation,
            option_overrides=overrides,
            image_service=image_service, compression_service=compression_service,
        )

        response = {
            'success': True,
            'session_id': session.session_id,
            'id': staged.pending_id,
            'media_kind': staged.media_kind.value,
            'preview_url': f"/api/media/{staged.pending_id}/preview?session_id={session.session_id}",
            'message': f'Staged {filename}'
        }
        if staged.asset is not None:
            asset = staged.asset
            response.update({
                'width': asset.final_width,
                'height': asset.final_height,
                'original_size': asset.original_byte_size,
                'compressed_size': asset.compressed_byte_size,
                'compression_ratio': round(asset.compression_ratio, 2),
                'degraded': asset.degraded,
                'budget_exceeded': asset.budget_exceeded,
            })

        logger.info(f"Staged {filename} as {staged.pending_id} for session {session.session_id}")
        return jsonify(response)

    except (UnsupportedMediaType, MediaTooLarge, InvalidCropRegion) as e:
        return jsonify({'success': False, 'message': str(e)}), 400
    except (KeyError, ValueError) as e:
        return jsonify({'success': False, 'message': f'Invalid request: {e}'}), 400
    except MediaPipelineError as e:
        logger.error(f"Media processing error: {e}")
        return jsonify({'success': False, 'message': f'Error processing media: {e}'}), 500


@app.route('/api/media/<pending_id>/preview', methods=['GET'])
def preview_media(pending_id):
    """Serve staged bytes for local preview before upload."""
    session_id = request.args.get('session_id')
    if not session_id or session_id not in sessions:
        return jsonify({'success': False, 'message': 'Invalid session'}), 400

    registry = sessions[session_id].registry
    entry = registry.get(pending_id)
    data = registry.preview_data(pending_id)
    if entry is None or data is None:
        return jsonify({'error': 'Media not found'}), 404
    return send_file(BytesIO(data), mimetype=entry.mime_type)


@app.route('/api/media/<pending_id>', methods=['DELETE'])
def remove_media(pending_id):
    """Discard a staged asset."""
    session_id = request.args.get('session_id')
    if not session_id or session_id not in sessions:
        return jsonify({'success': False, 'message': 'Invalid session'}), 400

    removed = sessions[session_id].registry.remove(pending_id)
    return jsonify({'success': True, 'removed': removed})


@app.route('/api/documents/publish', methods=['POST'])
def publish():
    """Upload every staged asset and return the resolved document."""
    payload = request.get_json(silent=True) or {}
    session_id = payload.get('session_id')
    if not session_id or session_id not in sessions:
        return jsonify({'success': False, 'message': 'Invalid session'}), 400

    document = payload.get('document')
    if not isinstance(document, dict) or not isinstance(document.get('blocks'), list):
        return jsonify({'success': False, 'message': 'Document must contain a blocks list'}), 400

    session = sessions[session_id]
    try:
        resolved = publish_document(
            document,
            session.registry,
            payload.get('folder'),
            upload_service=get_upload_service(),
        )
    except UploadFailure as e:
        logger.error(f"Publish failed for session {session_id}: {e}")
        return jsonify({
            'success': False,
            'message': str(e),
            'failed_id': e.pending_id,
            'pending_count': len(session.registry),
        }), 502

    return jsonify({
        'success': True,
        'session_id': session_id,
        'document': resolved,
        'pending_count': len(session.registry),
    })


@app.route('/api/media/files/<path:filename>')
def serve_uploaded(filename):
    """Serve files stored by the local upload backend."""
    return send_from_directory(os.path.abspath(RESULTS_FOLDER), filename)


@app.route('/api/health', methods=['GET'])
def health_check():
    """Health check endpoint."""
    return jsonify({
        'status': 'healthy',
        'message': 'Deferred Media API is running',
        'active_sessions': len(sessions)
    })


@app.route('/api/clear-session', methods=['POST'])
def clear_session():
    """Abandon a session: release its previews and forget it."""
    session_id = (request.get_json(silent=True) or {}).get('session_id')
    if session_id and session_id in sessions:
        sessions[session_id].clear()
        del sessions[session_id]
        return jsonify({'success': True, 'message': 'Session cleared'})
    return jsonify({'success': False, 'message': 'Session not found'})


@app.errorhandler(413)
def too_large(e):
    """Handle file too large error."""
    return jsonify({'error': f'File too large. Maximum size is {MAX_UPLOAD_SIZE_MB}MB.'}), 413


@app.errorhandler(500)
def internal_error(e):
    """Handle internal server error."""
    logger.error(f"Internal server error: {e}")
    return jsonify({'error': 'Internal server error'}), 500


def main():
    print("🚀 Starting Deferred Media API Server...")
    print(f"📁 Upload results directory: {RESULTS_FOLDER}")
    print(f"🔧 Max upload size: {MAX_UPLOAD_SIZE_MB}MB")
    print(f"☁️  Upload backend: {os.getenv('UPLOAD_BACKEND', 'local')}")
    print("="*60)

    try:
        app.run(
            host=os.getenv("API_HOST", "0.0.0.0"),
            port=int(os.getenv("API_PORT", "5000")),
            debug=False,
            threaded=False,
        )
    finally:
        upload_repository.close()


if __name__ == '__main__':
    main()

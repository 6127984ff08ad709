from flask import Blueprint, Response, current_app, request, send_from_directory
from werkzeug.utils import secure_filename

from geoquest.services.photos import PhotoService

photos = Blueprint('photos', __name__)


@photos.route('/<string:filename>', methods=['GET'])
def get_photo(filename):
    return send_from_directory(current_app.config['UPLOAD_FOLDER'], secure_filename(filename))


@photos.route('/<string:filename>/thumbnail', methods=['GET'])
def get_thumbnail(filename):
    width = request.args.get('w', 300, type=int)
    height = request.args.get('h', 200, type=int)
    data, mimetype = PhotoService.render_thumbnail(filename, width, height)
    return Response(data, mimetype=mimetype)

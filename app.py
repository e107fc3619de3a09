# app.py
from datetime import datetime, timezone
from flask import Flask, request, jsonify
import base64, binascii, json, logging, os

from huffman import (
    huffman_compress, huffman_decompress, tree_to_dict, tree_from_dict, ProgressLog,
    HuffmanError, EmptyInputError, MissingCodeError, InvalidTreeError,
    InvalidPayloadError, MalformedPathError,
)

app = Flask(__name__)

app.config.from_mapping(
    MAX_CONTENT_LENGTH=16 * 1024 * 1024,
    ALLOWED_EXTENSIONS=[
        'txt', 'md', 'csv', 'json', 'xml', 'html', 'css',
        'js', 'ts', 'py', 'java', 'cpp', 'c', 'h',
    ],
    BUNDLE_EXTENSION='.huff',
    STRICT_DECODE=False,
    LOG_LEVEL='INFO',
    HOST='0.0.0.0',
    PORT=5000,
    DEBUG=False,
)
# e.g. HUFFMAN_STRICT_DECODE=true, HUFFMAN_PORT=8080
app.config.from_prefixed_env('HUFFMAN')

ERROR_STATUS = {
    EmptyInputError: 400,
    InvalidTreeError: 400,
    InvalidPayloadError: 400,
    MalformedPathError: 422,
    MissingCodeError: 500,
}


def allowed_file(filename: str) -> bool:
    ext = os.path.splitext(filename)[1].lstrip('.').lower()
    return ext in {e.lower() for e in app.config['ALLOWED_EXTENSIONS']}


def download_name(filename: str) -> str:
    stem = os.path.splitext(filename)[0] or filename
    return stem + app.config['BUNDLE_EXTENSION']


def request_data() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise InvalidPayloadError('Request body must be a JSON object')
    return data


def decode_file(file_b64) -> bytes:
    if not isinstance(file_b64, str):
        raise ValueError('Thiếu dữ liệu file.')
    try:
        return base64.b64decode(file_b64, validate=True)
    except binascii.Error:
        raise ValueError('Dữ liệu file không phải base64 hợp lệ.') from None


def decode_text(file_b64) -> str:
    try:
        return decode_file(file_b64).decode('utf-8')
    except UnicodeDecodeError:
        raise ValueError('File không phải văn bản UTF-8.') from None


# Bundle = everything needed to decompress later:
# encoded bits | tree | original filename | size metadata
def pack_bundle(result, filename: str) -> dict:
    return {
        'encoded': result.encoded,
        'tree': tree_to_dict(result.tree),
        'original_filename': filename,
        'metadata': {
            'original_size': result.original_size,
            'encoded_size': result.encoded_size,
            'compression_ratio': result.compression_ratio,
            'timestamp': datetime.now(timezone.utc).isoformat(),
        },
    }


# Key names written by the older browser tool (.huff JSON)
LEGACY_KEYS = {
    'encoded': 'compressedData',
    'tree': 'huffmanTree',
    'original_filename': 'originalFileName',
}


def bundle_field(bundle: dict, key: str):
    if key in bundle:
        return bundle[key]
    return bundle.get(LEGACY_KEYS[key])


def unpack_bundle(bundle):
    if not isinstance(bundle, dict):
        raise InvalidPayloadError('Bundle must be a JSON object')
    tree_data = bundle_field(bundle, 'tree')
    if tree_data is None:
        raise InvalidTreeError('Bundle has no Huffman tree')
    encoded = bundle_field(bundle, 'encoded')
    if not isinstance(encoded, str):
        raise InvalidPayloadError('Bundle has no encoded data')
    tree = tree_from_dict(tree_data)
    filename = bundle_field(bundle, 'original_filename')
    if not isinstance(filename, str) or not filename:
        filename = 'file.txt'
    return encoded, tree, filename


def read_bundle(data: dict):
    # Either the bundle object itself or a base64 .huff file
    if 'bundle' in data:
        return unpack_bundle(data['bundle'])
    raw = decode_file(data.get('bundle_file') or data.get('file'))
    try:
        bundle = json.loads(raw.decode('utf-8'))
    except (UnicodeDecodeError, ValueError):
        raise InvalidPayloadError('Bundle file is not valid JSON') from None
    return unpack_bundle(bundle)


def error_response(e: Exception, action: str):
    if isinstance(e, HuffmanError):
        status = ERROR_STATUS.get(type(e), 400)
        app.logger.warning('%s rejected: %s: %s', action, type(e).__name__, e)
        return jsonify({'error': f'Lỗi {action}: {e}', 'type': type(e).__name__}), status
    if isinstance(e, ValueError):
        app.logger.warning('%s rejected: %s', action, e)
        return jsonify({'error': str(e)}), 400
    app.logger.exception('%s failed', action)
    return jsonify({'error': f'Lỗi {action}.'}), 500


# Compress endpoint
@app.route('/compress', methods=['POST'])
def compress():
    try:
        data = request_data()
        filename = data.get('filename') or 'file.txt'
        if not isinstance(filename, str):
            raise InvalidPayloadError('Filename must be a string')

        if not allowed_file(filename):
            return jsonify({'error': f'Định dạng file không được hỗ trợ: {filename}'}), 400

        text = decode_text(data.get('file'))

        progress = ProgressLog()
        result = huffman_compress(text, progress)
        bundle = pack_bundle(result, filename)

        app.logger.info('compressed %s: %d -> %d bits (%.1f%%)', filename,
                        result.original_size, result.encoded_size, result.compression_ratio)

        log_msg = '\n'.join(progress.messages())
        return jsonify({
            'bundle': bundle,
            'download_name': download_name(filename),
            'progress': [e.to_dict() for e in progress.events],
            'log': f'{log_msg}\nĐã nén {filename}: {result.original_size} → {result.encoded_size} bits '
                   f'(tiết kiệm {result.compression_ratio:.1f}%).'
        })
    except Exception as e:
        return error_response(e, 'nén')


# Decompress endpoint
@app.route('/decompress', methods=['POST'])
def decompress():
    try:
        data = request_data()
        encoded, tree, filename = read_bundle(data)

        text = huffman_decompress(encoded, tree, strict=app.config['STRICT_DECODE'])

        return jsonify({
            'original_file': base64.b64encode(text.encode('utf-8')).decode(),
            'original_filename': filename,
            'log': f'Giải nén thành công ({len(text)} ký tự).'
        })
    except Exception as e:
        return error_response(e, 'giải nén')


# Decompress & verify endpoint
@app.route('/verify', methods=['POST'])
def verify():
    try:
        data = request_data()
        original = decode_text(data.get('file'))
        if 'bundle' not in data and not data.get('bundle_file'):
            raise InvalidPayloadError('Missing bundle')
        encoded, tree, filename = read_bundle(data)

        text = huffman_decompress(encoded, tree, strict=app.config['STRICT_DECODE'])
        content_match = text == original

        if not content_match:
            app.logger.warning('verification mismatch for %s', filename)
        return jsonify({
            'length_match': len(text) == len(original),
            'content_match': content_match,
            'accuracy': 100.0 if content_match else 0.0,
            'log': 'Giải nén chính xác, không mất dữ liệu.' if content_match
                   else 'Nội dung giải nén khác bản gốc.'
        })
    except Exception as e:
        return error_response(e, 'kiểm tra')


# Run app
if __name__ == "__main__":
    logging.basicConfig(level=app.config['LOG_LEVEL'])
    app.run(host=app.config['HOST'], port=app.config['PORT'], debug=app.config['DEBUG'])

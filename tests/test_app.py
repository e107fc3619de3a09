import base64
import json

from huffman import huffman_compress


def b64(text: str) -> str:
    return base64.b64encode(text.encode('utf-8')).decode()


def unb64(data: str) -> str:
    return base64.b64decode(data).decode('utf-8')


def compress(client, text, filename='notes.txt'):
    return client.post('/compress', json={'file': b64(text), 'filename': filename})


def test_compress_returns_bundle(client):
    resp = compress(client, 'abracadabra')
    assert resp.status_code == 200
    body = resp.get_json()

    bundle = body['bundle']
    expected = huffman_compress('abracadabra')
    assert bundle['encoded'] == expected.encoded
    assert bundle['original_filename'] == 'notes.txt'
    assert bundle['tree']['frequency'] == 11
    meta = bundle['metadata']
    assert meta['original_size'] == 88
    assert meta['encoded_size'] == 23
    assert meta['compression_ratio'] == expected.compression_ratio
    assert 'timestamp' in meta

    assert body['download_name'] == 'notes.huff'
    assert [p['stage'] for p in body['progress']] == [
        'analyzing', 'building-tree', 'encoding', 'complete',
    ]
    assert body['progress'][-1]['progress'] == 100
    assert 'Compression complete!' in body['log']


def test_compress_rejects_empty_file(client):
    resp = compress(client, '')
    assert resp.status_code == 400
    assert resp.get_json()['type'] == 'EmptyInputError'


def test_compress_rejects_unsupported_extension(client):
    resp = compress(client, 'hello', filename='image.png')
    assert resp.status_code == 400
    assert 'error' in resp.get_json()


def test_compress_rejects_missing_file(client):
    resp = client.post('/compress', json={'filename': 'notes.txt'})
    assert resp.status_code == 400


def test_compress_rejects_binary_content(client):
    raw = base64.b64encode(b'\xff\xfe\x00\x81').decode()
    resp = client.post('/compress', json={'file': raw, 'filename': 'notes.txt'})
    assert resp.status_code == 400


def test_decompress_bundle_roundtrip(client):
    text = 'Xin chào! Huffman coding\n' * 5
    bundle = compress(client, text, 'hello.md').get_json()['bundle']

    resp = client.post('/decompress', json={'bundle': bundle})
    assert resp.status_code == 200
    body = resp.get_json()
    assert unb64(body['original_file']) == text
    assert body['original_filename'] == 'hello.md'


def test_decompress_huff_file(client):
    bundle = compress(client, 'mississippi').get_json()['bundle']
    huff = base64.b64encode(json.dumps(bundle, indent=2).encode()).decode()

    resp = client.post('/decompress', json={'file': huff})
    assert resp.status_code == 200
    assert unb64(resp.get_json()['original_file']) == 'mississippi'


def test_decompress_without_tree(client):
    bundle = compress(client, 'mississippi').get_json()['bundle']
    bundle['tree'] = None
    resp = client.post('/decompress', json={'bundle': bundle})
    assert resp.status_code == 400
    assert resp.get_json()['type'] == 'InvalidTreeError'


def test_decompress_invalid_tree(client):
    bundle = compress(client, 'mississippi').get_json()['bundle']
    bundle['tree']['left'] = None
    resp = client.post('/decompress', json={'bundle': bundle})
    assert resp.status_code == 400
    assert resp.get_json()['type'] == 'InvalidTreeError'


def test_decompress_empty_payload(client):
    bundle = compress(client, 'mississippi').get_json()['bundle']
    bundle['encoded'] = ''
    resp = client.post('/decompress', json={'bundle': bundle})
    assert resp.status_code == 400
    assert resp.get_json()['type'] == 'InvalidPayloadError'


def test_decompress_not_json_file(client):
    resp = client.post('/decompress', json={'file': b64('not json at all')})
    assert resp.status_code == 400


def test_decompress_strict_rejects_trailing_bits(app, client):
    bundle = compress(client, 'abracadabra').get_json()['bundle']
    bundle['encoded'] += '10'

    resp = client.post('/decompress', json={'bundle': bundle})
    assert resp.status_code == 200
    assert unb64(resp.get_json()['original_file']) == 'abracadabra'

    app.config['STRICT_DECODE'] = True
    resp = client.post('/decompress', json={'bundle': bundle})
    assert resp.status_code == 422
    assert resp.get_json()['type'] == 'MalformedPathError'


def test_verify_match(client):
    text = 'the quick brown fox'
    bundle = compress(client, text).get_json()['bundle']

    resp = client.post('/verify', json={'file': b64(text), 'bundle': bundle})
    assert resp.status_code == 200
    body = resp.get_json()
    assert body['length_match'] is True
    assert body['content_match'] is True
    assert body['accuracy'] == 100.0


def test_verify_mismatch(client):
    bundle = compress(client, 'the quick brown fox').get_json()['bundle']

    resp = client.post('/verify', json={'file': b64('the quick brown cat'), 'bundle': bundle})
    body = resp.get_json()
    assert body['length_match'] is True
    assert body['content_match'] is False
    assert body['accuracy'] == 0.0


def test_verify_requires_bundle(client):
    resp = client.post('/verify', json={'file': b64('abc')})
    assert resp.status_code == 400


def test_compress_rejects_non_object_body(client):
    resp = client.post('/compress', json=[1, 2])
    assert resp.status_code == 400
    assert resp.get_json()['type'] == 'InvalidPayloadError'


def test_decompress_rejects_non_object_body(client):
    resp = client.post('/decompress', json='bundle')
    assert resp.status_code == 400
    assert resp.get_json()['type'] == 'InvalidPayloadError'


def test_compress_rejects_non_string_filename(client):
    resp = client.post('/compress', json={'file': b64('hello'), 'filename': 5})
    assert resp.status_code == 400
    assert resp.get_json()['type'] == 'InvalidPayloadError'


def legacy_tree(node):
    if node is None:
        return None
    return {
        'char': node['symbol'],
        'frequency': node['frequency'],
        'left': legacy_tree(node['left']),
        'right': legacy_tree(node['right']),
    }


def test_decompress_legacy_huff_file(client):
    bundle = compress(client, 'abracadabra', 'story.txt').get_json()['bundle']
    legacy = {
        'compressedData': bundle['encoded'],
        'huffmanTree': legacy_tree(bundle['tree']),
        'originalFileName': 'story.txt',
        'metadata': {
            'originalSize': 88,
            'compressedSize': 23,
            'compressionRatio': bundle['metadata']['compression_ratio'],
            'timestamp': bundle['metadata']['timestamp'],
        },
    }
    huff = base64.b64encode(json.dumps(legacy, indent=2).encode()).decode()

    resp = client.post('/decompress', json={'file': huff})
    assert resp.status_code == 200
    body = resp.get_json()
    assert unb64(body['original_file']) == 'abracadabra'
    assert body['original_filename'] == 'story.txt'

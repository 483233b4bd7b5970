"""Tests for the S3-backed BlobStore."""

import pytest

from services.errors import BlobNotFound
from services.storage import BlobStore


def test_ensure_bucket_creates_missing_bucket(s3_client):
    store = BlobStore(s3_client, 'fresh-bucket')
    store.ensure_bucket()
    names = [b['Name'] for b in s3_client.list_buckets()['Buckets']]
    assert 'fresh-bucket' in names
    # second call is a no-op
    store.ensure_bucket()


def test_put_get_round_trip(store):
    store.put('1-a.pdf', b'data', 'application/pdf')
    blob = store.get('1-a.pdf')
    assert blob.content == b'data'
    assert blob.content_type == 'application/pdf'
    assert blob.size == 4


def test_get_missing(store):
    with pytest.raises(BlobNotFound):
        store.get('nope.pdf')


def test_exists_and_delete(store):
    store.put('1-a.pdf', b'data', 'application/pdf')
    assert store.exists('1-a.pdf')
    assert store.delete('1-a.pdf') is True
    assert not store.exists('1-a.pdf')
    assert store.delete('1-a.pdf') is False


def test_list_ignores_other_prefixes_and_nested_keys(store, s3_client):
    store.put('1-a.pdf', b'a', 'application/pdf')
    s3_client.put_object(Bucket='pdf-test', Key='thumbs/a.pdf.jpg', Body=b'x')
    s3_client.put_object(Bucket='pdf-test', Key='pdf/nested/2-b.pdf', Body=b'x')
    assert [b.name for b in store.list_blobs()] == ['1-a.pdf']


def test_list_paginates(s3_client):
    store = BlobStore(s3_client, 'pdf-test', prefix='many/')
    for i in range(1, 1006):
        s3_client.put_object(Bucket='pdf-test', Key=f'many/{i}-f.pdf', Body=b'')
    assert len(store.list_blobs()) == 1005


def test_copy_keeps_content_type(store):
    store.put('1-a.pdf', b'data', 'application/pdf')
    store.copy('1-a.pdf', '2-a.pdf')
    assert store.content_type('2-a.pdf') == 'application/pdf'


def test_location_without_public_base(store):
    assert store.location('1-a.pdf') == f'{store._client.meta.endpoint_url}/pdf-test/pdf/1-a.pdf'


def test_location_with_public_base(s3_client):
    store = BlobStore(s3_client, 'pdf-test', public_url_base='https://cdn.example.com')
    assert store.location('1-a.pdf') == 'https://cdn.example.com/pdf/1-a.pdf'


def test_with_prefix_shares_bucket(store):
    thumbs = store.with_prefix('thumbs/')
    thumbs.put('a.jpg', b'j', 'image/jpeg')
    assert thumbs.exists('a.jpg')
    assert not store.exists('a.jpg')

"""Tests for the shipped store implementations and the OpenAI vision client."""

from types import SimpleNamespace
from unittest.mock import MagicMock

import httpx
import openai
import orjson
import pytest
import requests

from reefscan.clients.catalog_store import InMemoryCatalogStore
from reefscan.clients.object_store import LocalObjectStore
from reefscan.clients.photo_fetcher import HttpPhotoFetcher, filename_from_url
from reefscan.clients.vision_model import OpenAIVisionModel
from reefscan.core.exceptions import (
    CatalogWriteError,
    InputValidationError,
    ModelUnavailableError,
    ObjectStoreError,
    SightingConflictError,
    SightingNotFoundError,
    SightingWriteError,
)
from reefscan.schemas.sighting import NewSightingPhoto, NewSpeciesRecord, SightingStatus


# =============================================================================
# Catalog
# =============================================================================


class TestInMemoryCatalogStore:
    def test_common_name_wins_over_scientific_name(self, catalog):
        catalog.create(NewSpeciesRecord(name='Amphiprion ocellaris', scientific_name='X y'))
        assert catalog.find_by_name('amphiprion ocellaris').id != 'sp-clownfish'

    def test_blank_name_finds_nothing(self, catalog):
        assert catalog.find_by_name('   ') is None

    def test_duplicate_name_is_rejected(self, catalog):
        with pytest.raises(CatalogWriteError):
            catalog.create(NewSpeciesRecord(name='CLOWNFISH'))

    def test_seed_file(self, tmp_path):
        seed = tmp_path / 'species.json'
        seed.write_bytes(
            orjson.dumps(
                [{'id': 'lionfish', 'name': 'Lionfish', 'scientific_name': 'Pterois volitans',
                  'danger': 'Medium', 'venomous': True}]
            )
        )

        catalog = InMemoryCatalogStore.from_json_file(seed)

        assert len(catalog) == 1
        assert catalog.find_by_name('Pterois volitans').venomous is True


# =============================================================================
# Sightings
# =============================================================================


class TestInMemorySightingStore:
    def test_second_open_sighting_conflicts(self, sightings):
        sightings.create_sighting('d', 'sp-clownfish', SightingStatus.IDENTIFIED)

        with pytest.raises(SightingConflictError) as exc_info:
            sightings.create_sighting('d', 'sp-clownfish', SightingStatus.PENDING)

        assert exc_info.value.status_code == 409

    def test_pending_sightings_without_species_never_conflict(self, sightings):
        sightings.create_sighting('d', None, SightingStatus.PENDING)
        sightings.create_sighting('d', None, SightingStatus.PENDING)
        assert len(sightings.list_sightings('d')) == 2

    def test_last_seen_never_moves_backwards(self, sightings, clock):
        sighting = sightings.create_sighting('d', 'sp-clownfish', SightingStatus.IDENTIFIED)
        earlier = clock.advance(hours=-1)

        touched = sightings.touch_last_seen(sighting.id, 'd', earlier)

        assert touched.last_seen == sighting.last_seen

    def test_foreign_device_cannot_touch_or_delete(self, sightings):
        sighting = sightings.create_sighting('d', 'sp-clownfish', SightingStatus.IDENTIFIED)

        with pytest.raises(SightingNotFoundError):
            sightings.touch_last_seen(sighting.id, 'intruder')
        with pytest.raises(SightingNotFoundError):
            sightings.delete_sighting(sighting.id, 'intruder')
        assert sightings.get_sighting(sighting.id, 'intruder') is None

    def test_photo_on_missing_sighting_fails(self, sightings, clock):
        photo = NewSightingPhoto(url='u', storage_path='p', taken_at=clock())
        with pytest.raises(SightingWriteError):
            sightings.add_photo('missing', photo)

    def test_delete_cascades_photos(self, sightings, clock):
        sighting = sightings.create_sighting('d', 'sp-clownfish', SightingStatus.IDENTIFIED)
        photo = NewSightingPhoto(url='u', storage_path='p', taken_at=clock())
        sightings.add_photo(sighting.id, photo)

        sightings.delete_sighting(sighting.id, 'd')

        assert sightings.list_photos(sighting.id) == []
        assert sightings.find_open_sighting('d', 'sp-clownfish') is None

    def test_list_is_most_recent_first(self, sightings, clock):
        older = sightings.create_sighting('d', 'sp-clownfish', SightingStatus.IDENTIFIED)
        clock.advance(minutes=5)
        newer = sightings.create_sighting('d', 'sp-blue-tang', SightingStatus.IDENTIFIED)

        assert [s.id for s in sightings.list_sightings('d')] == [newer.id, older.id]


# =============================================================================
# Object store
# =============================================================================


class TestLocalObjectStore:
    @pytest.fixture
    def store(self, tmp_path) -> LocalObjectStore:
        return LocalObjectStore(tmp_path, 'reef-photos', 'http://localhost:8000/media/')

    def test_upload_writes_file_and_returns_url(self, store, tmp_path):
        url = store.upload(b'jpeg', 'collections/d/x/a.jpg', 'image/jpeg')

        assert url == 'http://localhost:8000/media/reef-photos/collections/d/x/a.jpg'
        assert (tmp_path / 'reef-photos' / 'collections/d/x/a.jpg').read_bytes() == b'jpeg'

    @pytest.mark.parametrize('path', ['/etc/passwd', 'collections/../../escape.jpg'])
    def test_paths_outside_bucket_are_rejected(self, store, path):
        with pytest.raises(ObjectStoreError):
            store.upload(b'x', path, 'image/jpeg')

    def test_delete_missing_object_is_ignored(self, store):
        store.delete('collections/d/x/missing.jpg')


# =============================================================================
# Vision model
# =============================================================================


def completion(content: str | None) -> SimpleNamespace:
    message = SimpleNamespace(content=content)
    return SimpleNamespace(choices=[SimpleNamespace(message=message)])


class TestOpenAIVisionModel:
    def test_unconfigured_model_is_unavailable(self):
        model = OpenAIVisionModel(api_key=None)

        assert model.configured is False
        with pytest.raises(ModelUnavailableError) as exc_info:
            model.analyze(b'jpeg')
        assert exc_info.value.retryable is True
        assert exc_info.value.status_code == 503

    def test_sends_prompt_and_data_url(self):
        model = OpenAIVisionModel(api_key='sk-test', model='gpt-4o-mini')
        model._client = MagicMock()
        model._client.chat.completions.create.return_value = completion('{"detections": []}')

        assert model.analyze(b'\xff\xd8jpeg') == '{"detections": []}'

        kwargs = model._client.chat.completions.create.call_args.kwargs
        assert kwargs['model'] == 'gpt-4o-mini'
        content = kwargs['messages'][0]['content']
        assert content[0]['text'] == model.prompt
        assert content[1]['image_url']['url'].startswith('data:image/jpeg;base64,')

    def test_api_error_is_unavailable(self):
        model = OpenAIVisionModel(api_key='sk-test')
        model._client = MagicMock()
        request = httpx.Request('POST', 'https://api.openai.com/v1/chat/completions')
        model._client.chat.completions.create.side_effect = openai.APIConnectionError(
            request=request
        )

        with pytest.raises(ModelUnavailableError):
            model.analyze(b'jpeg')

    def test_empty_content_is_unavailable(self):
        model = OpenAIVisionModel(api_key='sk-test')
        model._client = MagicMock()
        model._client.chat.completions.create.return_value = completion(None)

        with pytest.raises(ModelUnavailableError, match='empty response'):
            model.analyze(b'jpeg')


# =============================================================================
# Photo fetcher
# =============================================================================


def http_response(status_code: int = 200, chunks: list[bytes] | None = None) -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.ok = status_code < 400
    response.iter_content.return_value = chunks if chunks is not None else [b'\xff\xd8', b'jpeg']
    response.__enter__.return_value = response
    return response


class TestHttpPhotoFetcher:
    def test_fetch_returns_body_and_filename(self, monkeypatch):
        get = MagicMock(return_value=http_response())
        monkeypatch.setattr(requests, 'get', get)

        data, filename = HttpPhotoFetcher(timeout=5.0).fetch('https://cdn.example.com/a/reef.jpg')

        assert (data, filename) == (b'\xff\xd8jpeg', 'reef.jpg')
        get.assert_called_once_with('https://cdn.example.com/a/reef.jpg', timeout=5.0, stream=True)

    def test_error_status_is_a_validation_error(self, monkeypatch):
        monkeypatch.setattr(requests, 'get', MagicMock(return_value=http_response(404)))

        with pytest.raises(InputValidationError, match='HTTP 404') as exc_info:
            HttpPhotoFetcher().fetch('https://cdn.example.com/missing.jpg')
        assert exc_info.value.field == 'photo_url'

    def test_connection_error_is_a_validation_error(self, monkeypatch):
        get = MagicMock(side_effect=requests.ConnectionError('name resolution failed'))
        monkeypatch.setattr(requests, 'get', get)

        with pytest.raises(InputValidationError, match='download failed'):
            HttpPhotoFetcher().fetch('https://unreachable.example.com/reef.jpg')

    def test_oversize_body_is_rejected(self, monkeypatch):
        response = http_response(chunks=[b'x' * 600, b'x' * 600])
        monkeypatch.setattr(requests, 'get', MagicMock(return_value=response))

        with pytest.raises(InputValidationError, match='exceeds maximum 1000 bytes'):
            HttpPhotoFetcher(max_bytes=1000).fetch('https://cdn.example.com/huge.jpg')

    def test_empty_body_is_rejected(self, monkeypatch):
        monkeypatch.setattr(requests, 'get', MagicMock(return_value=http_response(chunks=[])))

        with pytest.raises(InputValidationError, match='empty body'):
            HttpPhotoFetcher().fetch('https://cdn.example.com/empty.jpg')

    @pytest.mark.parametrize('url', ['file:///etc/passwd', 'ftp://host/reef.jpg', 'reef.jpg'])
    def test_non_http_urls_are_rejected_without_a_request(self, monkeypatch, url):
        get = MagicMock()
        monkeypatch.setattr(requests, 'get', get)

        with pytest.raises(InputValidationError, match='http or https'):
            HttpPhotoFetcher().fetch(url)
        get.assert_not_called()

    @pytest.mark.parametrize(
        'url, expected',
        [
            ('https://cdn.example.com/dives/reef%20shot.png?sig=1', 'reef shot.png'),
            ('https://cdn.example.com/', 'downloaded_image.jpg'),
            ('https://cdn.example.com', 'downloaded_image.jpg'),
        ],
    )
    def test_filename_from_url(self, url, expected):
        assert filename_from_url(url) == expected

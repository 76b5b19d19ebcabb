#!/usr/bin/env python3
"""
Analyze a photo with a running Reefscan service and draw the result locally.

Posts the photo to /intelligence/analyze-photo, prints the detections and
collection entries, and writes an annotated JPEG plus the raw JSON response.

Usage:
    python scripts/annotate_photo.py reef.jpg --device-id my-phone
    python scripts/annotate_photo.py reef.jpg --device-id my-phone -o out.jpg
"""

import argparse
import json
import sys
from pathlib import Path

import requests

from reefscan.core.exceptions import AnnotationError
from reefscan.schemas.analysis import ImageAnalysisResult
from reefscan.services.annotation import AnnotationRenderer
from reefscan.services.image import ImageService


def draw_results(image_path: Path, result: ImageAnalysisResult, output_path: Path) -> bool:
    """Render the detections onto the local copy of the photo and save it."""
    jpeg = ImageService().convert_to_jpeg(image_path.read_bytes(), image_path.name)
    try:
        annotated = AnnotationRenderer().render(jpeg, result.detections)
    except AnnotationError as e:
        print(f'Error: {e.message}')
        return False

    output_path.write_bytes(annotated)
    print(f'Saved: {output_path}')
    return True


def main():
    parser = argparse.ArgumentParser(description='Analyze and annotate a marine life photo')
    parser.add_argument('image', help='Input image path')
    parser.add_argument('--device-id', required=True, help='Device identifier')
    parser.add_argument('--spot-id', help='Optional dive spot id')
    parser.add_argument('--lat', type=float, help='Optional latitude')
    parser.add_argument('--lng', type=float, help='Optional longitude')
    parser.add_argument('--output', '-o', help='Output image path')
    parser.add_argument(
        '--api-url',
        default='http://localhost:8000',
        help='Reefscan server URL (default: http://localhost:8000)',
    )
    parser.add_argument('--timeout', type=float, default=120.0, help='Request timeout in seconds')
    args = parser.parse_args()

    image_path = Path(args.image)
    if not image_path.exists():
        print(f'Error: Image not found: {image_path}')
        sys.exit(1)

    output_path = Path(args.output) if args.output else image_path.with_name(
        f'{image_path.stem}_annotated.jpg'
    )

    # Call API
    url = f'{args.api_url.rstrip("/")}/intelligence/analyze-photo'
    form = {'device_id': args.device_id}
    for field in ('spot_id', 'lat', 'lng'):
        value = getattr(args, field)
        if value is not None:
            form[field] = str(value)

    print(f'Calling: {url}')
    with open(image_path, 'rb') as f:
        response = requests.post(
            url, data=form, files={'photo': (image_path.name, f)}, timeout=args.timeout
        )

    if response.status_code != 200:
        print(f'API error: {response.status_code}')
        print(response.text)
        sys.exit(1)

    payload = response.json()
    result = ImageAnalysisResult.model_validate(payload)

    print(f'\nResults for {result.filename}:')
    for detection in result.detections:
        status = 'catalog' if detection.was_in_database else 'unresolved'
        print(f'  {detection.species} ({detection.confidence:.0%}, {status})')
    for unknown in result.unknown_species:
        print(f'  unknown: {unknown.description} ({unknown.confidence:.0%})')
    for entry in result.collection_entries:
        action = 'new' if entry.created else 'updated'
        print(f'  sighting {entry.sighting_id}: {entry.species} ({action})')
    for failure in result.failures:
        print(f'  failed {failure.stage} for {failure.species}: {failure.error}')
    print(f'  Time: {response.headers.get("X-Process-Time", "n/a")}')

    # Draw and save
    draw_results(image_path, result, output_path)

    # Also save JSON result
    json_path = output_path.with_suffix('.json')
    json_path.write_text(json.dumps(payload, indent=2))
    print(f'Saved: {json_path}')


if __name__ == '__main__':
    main()

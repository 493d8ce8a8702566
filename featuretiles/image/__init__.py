# This file is part of the FeatureTiles project.
# Copyright (C) 2024 FeatureTiles developers
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#    http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Encoding and decoding of tile images.

All functions log failures and return ``None`` instead of raising.
"""
import base64
from io import BytesIO

from PIL import Image, UnidentifiedImageError

from featuretiles.config import base_config
from featuretiles.image.opts import ImageFormat

import logging
log = logging.getLogger('featuretiles.image')


magic_bytes = [
    ('png', (b"\211PNG\r\n\032\n",)),
    ('jpeg', (b"\xFF\xD8",)),
    ('tiff', (b"MM\x00\x2a", b"II\x2a\x00",)),
    ('gif', (b"GIF87a", b"GIF89a",)),
]


def peek_image_format(buf):
    if isinstance(buf, bytes):
        buf = BytesIO(buf)
    buf.seek(0)
    header = buf.read(10)
    buf.seek(0)
    for format, bytes_ in magic_bytes:
        if header.startswith(bytes_):
            return format
    return None


def filter_format(format):
    if format.lower() == 'jpg':
        return 'jpeg'
    if format.lower() == 'tif':
        return 'tiff'
    return format.lower()


def img_to_buf(img, format):
    defaults = {}
    format = filter_format(ImageFormat(format).ext)

    if format == 'jpeg':
        img = img.convert('RGB')
        defaults['quality'] = base_config().image.jpeg_quality
    elif format == 'png':
        defaults['optimize'] = False

    buf = BytesIO()
    img.save(buf, format, **defaults)
    buf.seek(0)
    return buf


def encode_image(img, format=None):
    """
    Encode `img` and return the image data as bytes. PNG is used if no
    `format` is given.
    """
    if img is None:
        log.error('failed to encode image: no image')
        return None
    if format is None:
        format = base_config().image.format
    try:
        with img_to_buf(img, format) as buf:
            return buf.getvalue()
    except (OSError, ValueError, KeyError) as ex:
        log.error('failed to encode image as %s: %s', format, ex)
        return None


def decode_image(data):
    """
    Decode image data (bytes or file object) and return a loaded PIL image.
    """
    if not data:
        log.error('failed to decode image: no data')
        return None
    if isinstance(data, bytes):
        data = BytesIO(data)
    try:
        img = Image.open(data)
        img.load()
        return img
    except (UnidentifiedImageError, OSError, ValueError) as ex:
        log.error('failed to decode image: %s', ex)
        return None


def image_to_base64(data):
    """
    Return image data as base64 text for JSON or HTML embedding.
    """
    if data is None:
        return None
    if isinstance(data, Image.Image):
        data = encode_image(data)
        if data is None:
            return None
    return base64.b64encode(data).decode('ascii')

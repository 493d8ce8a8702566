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
Service exception handling.
"""
from featuretiles.response import Response


class RequestError(Exception):
    """
    Exception for all request related errors.

    :ivar internal: True if the error was an internal error, ie. the request itself
                    was valid (e.g. the feature source is unreachable)
    """
    status = 500
    internal = False

    def __init__(self, message, status=None, internal=None):
        Exception.__init__(self, message)
        self.msg = message
        if status is not None:
            self.status = status
        if internal is not None:
            self.internal = internal

    def render(self):
        """
        Return a plain text response with the error message.

        :rtype: `Response`
        """
        return Response(self.msg, status=self.status, mimetype='text/plain')

    def __str__(self):
        return '%s("%s", status=%r)' % (self.__class__.__name__, self.msg, self.status)


class InvalidInput(RequestError):
    """Malformed request parameter (bbox, size, missing parameter)."""
    status = 400


class OutOfExtent(RequestError):
    """The requested bbox is not within the valid area of the CRS."""
    status = 400


class RetrievalFailure(RequestError):
    """
    The feature source failed. The message is generic, the original
    exception is kept as ``__cause__`` for logging.
    """
    status = 502
    internal = True


class EncodingFailure(RequestError):
    status = 500
    internal = True


class StyleUnresolved(Exception):
    """
    No style could be built for a layer. Handled inside the style
    resolver, which returns ``None`` instead.
    """
    pass

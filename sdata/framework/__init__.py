# Copyright (c) 2025, HaiyangLi <quantocean.li at gmail dot com>
#
# SPDX-License-Identifier: Apache-2.0

from .attached_file import AttachedFile, content_disposition
from .diagnosis import Diagnosis
from .executor import RequestState, RequestStateMachine
from .request import SDataRequest, apply_selector, infer_content_type
from .response import SDataResponse, read_content
from .tracking import SDataTracking

__all__ = (
    "AttachedFile",
    "Diagnosis",
    "RequestState",
    "RequestStateMachine",
    "SDataRequest",
    "SDataResponse",
    "SDataTracking",
    "apply_selector",
    "content_disposition",
    "infer_content_type",
    "read_content",
)

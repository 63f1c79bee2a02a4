from fastapi import Request

from gha_exporter.app import Exporter


def get_exporter(request: Request) -> Exporter:
    return request.app.state.exporter

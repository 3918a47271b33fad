from tracecapture.artifacts.writer import ArtifactWriter, TraceArtifact

__all__ = ['ArtifactWriter', 'TraceArtifact']

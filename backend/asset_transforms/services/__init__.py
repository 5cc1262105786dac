"""
Services module for Asset Transforms.

This module contains the business logic services that coordinate between
the data layer and callers. Services take their collaborators (database
operations, config store, volumes, image backend) by injection.

Available Services:
- TransformDefinitionService: Named transform store backed by the config store
- TransformEvents: Observer registration for transform hooks
- InMemoryConfigStore: Config store with change and remove notifications
- LocalVolume: Filesystem-backed volume
- PillowImageBackend: Raster image backend

Subdirectory Services:
- transform_pipeline: Index resolution, generation and cleanup of renditions
- logger: loguru-based service loggers

Import services from their modules; this package does not import them
eagerly so leaf modules can use the logger without loading the pipeline.
"""

"""Application build framework.

This package holds the app-specific pieces the stages are written against:
options and environment resolution, addon dispatch, module registry
derivation, the default compilers/bundler and output assembly. Stage
implementations live in `app_bundler.stages`.

Common entrypoints:

- `app_bundler.framework.options`: `BuildOptions.from_dict`
- `app_bundler.framework.addons`: addon normalization + ordered hook dispatch
- `app_bundler.framework.module_registry`: module map + resolver configuration

For reusable, app-agnostic build primitives, use `treekit`.
"""

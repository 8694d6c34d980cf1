"""
Export and sync (admin only): mirror collections to a network folder,
package the project archive, run the build command.
"""
